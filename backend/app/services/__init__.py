"""
RxScribe Backend: Services Layer
=================================

Service Inventory:
    - LLMService (abstract): provider boundary, generate(prompt, image) → text
    - GeminiService: Google Gemini implementation of LLMService
    - MedicalAIService: transcription, summarization, pattern analysis
    - FileService: image validation, data URLs, attachment storage
    - RecordStore / SQLRecordStore: record-persistence collaborator
    - HandwritingSession: upload → transcribe → edit → save state machine
"""
