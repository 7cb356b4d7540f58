"""MiniChatAPI: real-time chat broadcast over Server-Sent Events."""
