ANALYSIS_INSTRUCTIONS = """\
Please provide a JSON response with the following structure:
{
  "complexity": "simple|moderate|complex|very_complex",
  "mood": "calm|focused|energetic|intense",
  "patterns": ["array of detected code patterns"],
  "codeType": "algorithm|data_structure|ui_frontend|backend_api|utility|test",
  "recommendedBPM": 60-140,
  "energy": 1-10,
  "genre": "ambient|electronic|orchestral|jazz|rock",
  "description": "brief description of the code's nature"
}

Analysis guidelines:
- Simple code: Basic variables, simple functions (60-80 BPM, calm mood)
- Moderate code: Control structures, moderate logic (80-100 BPM, focused mood)
- Complex code: Algorithms, data structures (90-120 BPM, energetic mood)
- Very complex: Advanced algorithms, intricate logic (100-140 BPM, intense mood)

For UI/Frontend code, prefer higher energy and BPM (110-140).
For data structures, prefer structured rhythmic patterns (80-100 BPM).
For algorithms, prefer progressive building intensity (90-120 BPM).

Return ONLY the JSON response, no additional text."""
