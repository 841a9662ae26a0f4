"""Mood and transcription prompts."""

MOOD_PROMPT = (
    "Analyze the facial expression in this image and describe the person's "
    "likely mood (e.g., happy, sad, anxious, neutral). Provide a one-word answer."
)

TRANSCRIPTION_PROMPT = "Transcribe the following audio."
