from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from swapface.domain.entities import BoundingBox
from swapface.domain.ports import DetectorPort

from .classifier_cache import DEFAULT_CASCADE, Fetcher, classifier_path, http_fetcher, packaged_fetcher


class HaarFaceDetector(DetectorPort):
    """Frontal-face detector backed by an OpenCV Haar cascade.

    The cascade file comes from the shared classifier cache: downloaded from
    ``classifier_url`` when set, otherwise read from the OpenCV package data.
    """

    def __init__(
        self,
        classifier_url: Optional[str] = None,
        *,
        cascade_name: str = DEFAULT_CASCADE,
        fetcher: Optional[Fetcher] = None,
        scale_factor: float = 1.1,
        min_neighbors: int = 3,
    ) -> None:
        self._log = logging.getLogger(__name__)
        self.cascade_name = cascade_name
        if fetcher is not None:
            self._fetch = fetcher
        elif classifier_url:
            self._fetch = http_fetcher(classifier_url)
        else:
            self._fetch = packaged_fetcher(cascade_name)
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self._classifier: Optional[cv2.CascadeClassifier] = None
        self._gray: Optional[np.ndarray] = None

    @property
    def loaded(self) -> bool:
        return self._classifier is not None

    def load(self) -> None:
        """Resolve the shared cascade file and build the classifier.

        Raises:
            RuntimeError: If the cascade file cannot be parsed by OpenCV.
        """
        if self._classifier is not None:
            return
        path = classifier_path(self.cascade_name, self._fetch)
        classifier = cv2.CascadeClassifier()
        if not classifier.load(str(path)):
            raise RuntimeError(f"Cannot load cascade {path}")
        self._classifier = classifier

    def detect(self, frame: np.ndarray) -> List[BoundingBox]:
        if self._classifier is None:
            raise RuntimeError("Detector used before load() or after release()")
        if frame.ndim == 3:
            code = cv2.COLOR_BGRA2GRAY if frame.shape[2] == 4 else cv2.COLOR_BGR2GRAY
            self._gray = cv2.cvtColor(frame, code, dst=self._gray if self._shape_matches(frame) else None)
            gray = self._gray
        else:
            gray = frame
        found = self._classifier.detectMultiScale(gray, scaleFactor=self.scale_factor, minNeighbors=self.min_neighbors)
        return [BoundingBox(int(x), int(y), int(w), int(h)) for (x, y, w, h) in found]

    def release(self) -> None:
        self._classifier = None
        self._gray = None

    def _shape_matches(self, frame: np.ndarray) -> bool:
        return self._gray is not None and self._gray.shape == frame.shape[:2]


__all__ = ["HaarFaceDetector"]
