# app/api/socketio/__init__.py

"""
Socket.IO namespaces for real-time features

Active namespaces:
- settings.SOCKETIO_NAMESPACE (default "/"): presence, chat relay, reactions
  and call signaling

To add a new namespace:
1. Create a new file: <feature>_namespace.py
2. Inherit from AuthNamespace (handles authentication automatically) or BaseNamespace (no auth)
3. For AuthNamespace, implement optional callbacks:
   - handle_connect(self, sid, environ, user) - called after successful auth
   - handle_disconnect(self, sid) - called before disconnection
4. Register it below: sio.register_namespace(YourNamespace('/your-path'))
"""

from config.settings import settings
from infrastructure.socketio_manager import sio, manager
from services.presence_service import PresenceService, InMemoryPresenceRegistry
from .chat_namespace import ChatNamespace

# One presence registry per process, shared with the REST layer and lifespan
presence_service = PresenceService(InMemoryPresenceRegistry())

chat_namespace = ChatNamespace(settings.SOCKETIO_NAMESPACE, presence=presence_service, connections=manager)
sio.register_namespace(chat_namespace)


__all__ = ['sio', 'manager', 'presence_service', 'chat_namespace', 'ChatNamespace']
