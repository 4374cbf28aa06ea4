"""API Gateway - single HTTP surface for the backend services.

Routes requests to:
- Auth service: accounts, login, user administration, credential verification
- Forum service: posts and comments
- Assistant service: chats and messages
- RAG service: document management
"""

__version__ = "1.0.0"
