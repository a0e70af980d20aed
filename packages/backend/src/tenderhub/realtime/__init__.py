"""Real-time infrastructure — connection registry + WebSocket.

Learn: Events flow in one direction:
1. Services → ConnectionRegistry.notify() (look up the recipient's socket)
2. Registry → Connection.send_message() → browser

Each user has at most one live connection. The registry is in-process
only: a user connected to another worker process will not see events
published here.
"""
