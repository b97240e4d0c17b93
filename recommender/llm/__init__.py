"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Build prompts for place ranking, action suggestions and preference inference.
- Expose a text-in / text-out model callable with a bounded timeout.
"""
