"""Protocol tools: discovery, token validation and the directory client."""
