"""HTTP middleware for the mermaidq API"""
