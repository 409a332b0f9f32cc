"""
Interview matrix CLI package.

This package contains a CLI tool that builds a question-by-respondent matrix
from interview transcripts:
- filtering interviewer speech and segmenting transcripts into chunks/windows,
- retrieving the windows most relevant to each discussion guide question,
- extracting a verbatim quote, summary and theme per window with an LLM,
- selecting the best-supported answer per respondent and question.
"""
