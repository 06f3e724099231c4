"""
Business Ready 2025 data chatbot.

Retrieval engine over the pre-built topic score and economy answer files,
plus a thin conversational layer and a Streamlit UI.
"""
