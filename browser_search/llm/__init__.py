from .ollama import GenerateResponse, OllamaClient, OllamaError

__all__ = ["GenerateResponse", "OllamaClient", "OllamaError"]
