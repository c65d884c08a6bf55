"""
drawserver - HTTP and WebSocket front end for a single drawcore editor session.
"""
