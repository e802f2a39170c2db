"""Console progress reporting for forecast runs"""

from typing import Any, Dict, List, Optional, Tuple

import numpy as np

# Peak value above which vegetation reads as dense, and above which it reads as sparse.
# EVI saturates lower than NDVI over the same canopy.
VEGETATION_LEVELS: Dict[str, Tuple[float, float]] = {
    "NDVI": (0.6, 0.2),
    "EVI": (0.45, 0.15),
}


def vegetation_verdict(label: str, peak: float) -> Optional[str]:
    """Rough canopy reading for a series peak, None for an index without known levels"""
    levels = VEGETATION_LEVELS.get(label.upper())
    if levels is None:
        return None
    dense, sparse = levels
    if peak <= 0:
        return "no vegetation signal (water, snow or cloud)"
    if peak > dense:
        return "dense vegetation"
    if peak > sparse:
        return "sparse to moderate vegetation"
    return "bare or barely vegetated ground"


class DebugLogger:
    """Emoji console output for each stage of a run"""

    @staticmethod
    def log_data_shape(name: str, data: Any) -> None:
        size = getattr(data, 'shape', None)
        if size is None:
            size = len(data) if hasattr(data, '__len__') else type(data).__name__
        print(f"📐 {name}: {size}")

    @staticmethod
    def log_vi_stats(values: List[float], label: str = "NDVI", source: str = "API") -> None:
        """Prints count, spread and a canopy verdict for a loaded series"""
        if not values:
            print(f"⚠️  {source} returned no usable {label} values")
            return

        arr = np.asarray(values, dtype=float)
        print(f"🌿 {label} from {source}: n={arr.size}, "
              f"min={arr.min():.3f}, mean={arr.mean():.3f}, max={arr.max():.3f}")

        verdict = vegetation_verdict(label, float(arr.max()))
        if verdict is not None:
            print(f"   ↳ {verdict}")

    @staticmethod
    def log_training_progress(epoch: int, total_epochs: int, loss: float, model_name: str,
                              every: int = 20) -> None:
        done = epoch + 1
        if done % every and done != total_epochs:
            return
        print(f"🏋️ {model_name} {done}/{total_epochs}: loss {loss:.6f}")

    @staticmethod
    def log_skipped(stage: str, item: Any, reason: Optional[BaseException] = None) -> None:
        """Logs an item dropped by a best-effort stage"""
        suffix = f" ({reason})" if reason is not None else ""
        print(f"🔍 {stage}: skipped {item}{suffix}")
