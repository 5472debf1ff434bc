from .mirror_manager import MirrorManager, MirrorState, ProbeStrategy

__all__ = ["MirrorManager", "MirrorState", "ProbeStrategy"]
