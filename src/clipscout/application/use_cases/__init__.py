from .resolve_clip import ResolveClipUseCase

__all__ = ["ResolveClipUseCase"]
