"""hairlab: hairstyle suggestions and previews through multimodal providers."""

__version__ = "0.3.0"
