"""Document extraction prompts (prescription digitizer + chat attachments)."""

from __future__ import annotations
from textwrap import dedent

NOT_A_PRESCRIPTION = "This document does not appear to be a medical prescription."


def prescription_prompt() -> str:
    return dedent(
        f"""\
        You are an expert medical data extractor. Your task is to analyze the provided medical document and extract only the most critical information.

        Format the output using simple, clean HTML.
        - Use <h3> for section titles (e.g., 'Patient Details').
        - Use <ul> and <li> for lists of medications or other items.
        - Use <strong> to highlight key terms like 'Name:' or medication names.
        - Do not include <html>, <head>, or <body> tags. Do not use any CSS or <style> tags.

        **Extraction Rules:**
        1.  **Do not add any introductory text or preamble.** Directly start with the extracted HTML data.
        2.  Extract the following sections if present:
            *   **Patient Details**: Include name, age, and gender.
            *   **Prescribing Doctor**: Include the doctor's name and clinic/hospital.
            *   **Diagnosis**: The primary diagnosis mentioned in the prescription.
            *   **Date of Prescription**: The date the prescription was issued.
            *   **Medications**: For each medication, create a list item with its name, dosage, and frequency/instructions.
            *   **Instructions**: Include any other special instructions for the patient.

        3.  **Ignore all non-essential information**: This includes pharmacy logos, addresses, phone numbers, barcodes, etc.
        4.  If the document does not appear to be a medical prescription, respond with only this exact text: '{NOT_A_PRESCRIPTION}'"""
    )


def document_prompt() -> str:
    """Looser extraction used for files attached in chat (reports, lab results, photos)."""
    return dedent(
        """\
        Extract the key information from the provided document or image.
        If it is a medical document (prescription, lab report, discharge summary), list the patient details, diagnoses, medications with dosage and frequency, test results with reference ranges, and any instructions.
        Otherwise, describe its relevant content briefly.
        Format the output using simple HTML (<strong>, <ul>, <li>, <p>). Do not include <html>, <head>, or <body> tags or CSS.
        Do not add any preamble."""
    )


def document_follow_up(*, extracted_text: str, user_text: str) -> str:
    return (
        "A document was just analyzed. Here is the content:\n\n"
        f"{extracted_text}\n\n"
        "Now, based on this information, please respond to my original message: "
        f'"{user_text}"'
    )


def analysis_wrapper(*, file_name: str, extracted_text: str) -> str:
    return (
        '<div class="document-analysis">'
        f"<strong>Analysis of {file_name}:</strong><br/>{extracted_text}"
        "</div>"
    )
