"""
RxScribe Backend: Provider Prompt Templates
============================================

Fixed instructional prompts sent to the generative-language provider.
Record text is appended to (or embedded in) these templates verbatim; nothing
here is tuned per request.
"""

HANDWRITING_PROMPT = (
    "This is an image of a doctor's handwritten prescription or medical note. "
    "Please transcribe this handwritten medical document. Include all the text "
    "you can see in the image, including medication names, dosages, instructions, "
    "and any other relevant information."
)

LAYMAN_SUMMARY_PROMPT = (
    "Summarize the following medical record in simple, easy-to-understand "
    "language for a patient without medical background:\n\n"
)

DOCTOR_SUMMARY_PROMPT = (
    "Provide a detailed medical summary of the following record, using "
    "appropriate medical terminology for healthcare professionals:\n\n"
)

PATTERN_ANALYSIS_PROMPT = (
    "Analyze the following set of medical records for a single patient. "
    "Identify any patterns, trends, or potential concerns across these records. "
    "Look for changes in vital signs, recurring symptoms, medication adjustments, "
    "or any other significant observations:\n\n"
)

# Placed between consecutive records in the analysis prompt.
RECORD_DELIMITER = "\n\n--- Next Record ---\n\n"
