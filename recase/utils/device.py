from __future__ import annotations

import torch


def resolve_device(name: str = "auto") -> torch.device:
    """
    auto -> CUDA if available, else CPU.
    cpu / cuda (or cuda:N) -> that device; asking for CUDA without it is an error.
    """
    forced = (name or "auto").strip().lower()
    if forced in ("", "auto"):
        return torch.device("cuda" if torch.cuda.is_available() else "cpu")
    if forced == "cpu":
        return torch.device("cpu")
    if forced in ("cuda", "gpu") or forced.startswith("cuda:"):
        if not torch.cuda.is_available():
            raise RuntimeError(
                f"device={forced!r} requested but CUDA is not available "
                f"(torch={torch.__version__}, torch.version.cuda={torch.version.cuda}). Use --device cpu."
            )
        return torch.device("cuda" if forced == "gpu" else forced)
    raise RuntimeError(f"Unknown device={forced!r}. Use auto|cpu|cuda.")
