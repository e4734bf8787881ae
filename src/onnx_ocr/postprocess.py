"""Postprocessing modules for OCR outputs."""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np

from .geometry import extract_boxes
from .preprocess import probability_map_to_gray
from .schema import Box, PreprocessResult

logger = logging.getLogger(__name__)


class BoxPostProcess:
    """Post-processing for detection: probability map to text boxes."""

    def __init__(
        self,
        minimum_area_threshold=20,
        padding_vertical=0.4,
        padding_horizontal=0.6,
        min_box_size=5,
    ):
        """Initialize box post-processor.

        Args:
            minimum_area_threshold: Contour area cut-off in padded input space
            padding_vertical: Vertical padding as a fraction of box height
            padding_horizontal: Horizontal padding as a fraction of box height
            min_box_size: Boxes must be larger than this on both axes
        """
        self.minimum_area_threshold = minimum_area_threshold
        self.padding_vertical = padding_vertical
        self.padding_horizontal = padding_horizontal
        self.min_box_size = min_box_size

    def __call__(self, prob_map: np.ndarray, input_info: PreprocessResult) -> List[Box]:
        """Convert a probability map to boxes in original-image coordinates.

        Args:
            prob_map: (H, W) map matching the padded input
            input_info: Preprocessing result of the same pass

        Returns:
            Boxes sorted in reading order
        """
        gray = probability_map_to_gray(prob_map, input_info.width, input_info.height)[:, :, 0]
        return extract_boxes(
            gray,
            input_info,
            minimum_area_threshold=self.minimum_area_threshold,
            padding_vertical=self.padding_vertical,
            padding_horizontal=self.padding_horizontal,
            min_size=self.min_box_size,
        )


class CharacterDictionary:
    """Immutable character table for CTC decoding.

    Index 0 is the CTC blank; the last index is the space (or unknown) slot.
    """

    BLANK = "blank"

    def __init__(self, characters: Iterable[str]):
        self._characters = tuple(characters)
        if not self._characters:
            raise ValueError("Character dictionary is empty")

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[str],
        add_blank: bool = True,
        use_space_char: bool = True,
    ) -> "CharacterDictionary":
        """Build a dictionary from raw lines (trailing whitespace trimmed).

        Args:
            lines: One character (or token) per line
            add_blank: Prepend the CTC blank slot
            use_space_char: Append a space slot
        """
        characters = [line.rstrip() for line in lines]
        while characters and characters[-1] == "":
            characters.pop()
        if not characters:
            raise ValueError("Character dictionary is empty")

        if add_blank:
            characters = [cls.BLANK] + characters
        if use_space_char:
            characters.append(" ")
        return cls(characters)

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> "CharacterDictionary":
        return cls.from_lines(data.decode("utf-8").split("\n"), **kwargs)

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "CharacterDictionary":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Character dictionary not found: {path}")
        logger.debug("Loading character dictionary from: %s", path)
        return cls.from_bytes(path.read_bytes(), **kwargs)

    @classmethod
    def load(cls, source, **kwargs) -> "CharacterDictionary":
        """Load from a path, raw bytes, a sequence of lines or an existing dictionary."""
        if isinstance(source, CharacterDictionary):
            return source
        if isinstance(source, (bytes, bytearray)):
            return cls.from_bytes(bytes(source), **kwargs)
        if isinstance(source, (str, Path)):
            return cls.from_file(source, **kwargs)
        return cls.from_lines(source, **kwargs)

    def __len__(self) -> int:
        return len(self._characters)

    def __getitem__(self, index: int) -> str:
        return self._characters[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._characters)

    def __repr__(self):
        return f"CharacterDictionary({len(self)} entries)"


def _to_probabilities(logits: np.ndarray) -> np.ndarray:
    """Softmax each row unless the rows already are distributions."""
    if logits.size and np.all(logits >= 0) and np.allclose(logits.sum(axis=1), 1.0, atol=1e-3):
        return logits
    shifted = logits - logits.max(axis=1, keepdims=True)
    exp = np.exp(shifted)
    return exp / exp.sum(axis=1, keepdims=True)


class CTCLabelDecode:
    """Greedy CTC decoding for text recognition."""

    BLANK_INDEX = 0
    UNK_TOKEN = "<unk>"

    def __init__(self, character_dict: Union[CharacterDictionary, Sequence[str]]):
        """Initialize CTC decoder.

        Args:
            character_dict: Dictionary whose index 0 is the blank symbol
        """
        self.character = character_dict

    def __call__(self, preds: np.ndarray) -> List[Tuple[str, float]]:
        """Decode CTC predictions to text.

        Args:
            preds: Prediction array [batch, time, num_classes]

        Returns:
            List of (text, confidence) tuples
        """
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]
        preds = np.asarray(preds)
        if preds.ndim == 2:
            preds = preds[np.newaxis]
        return [self.decode(batch) for batch in preds]

    def decode(self, logits: np.ndarray) -> Tuple[str, float]:
        """Collapse one [time, num_classes] sequence into text.

        Blanks and immediate repeats are dropped. The last dictionary slot
        decodes to a space, or to nothing when it holds the unknown token.

        Returns:
            (text, confidence) where confidence is the mean max-probability of
            the emitting timesteps (0.0 when nothing is emitted)
        """
        logits = np.asarray(logits, dtype=np.float32)
        if logits.ndim != 2:
            raise ValueError(f"Expected [time, num_classes] logits, got shape {logits.shape}")

        dict_len = len(self.character)
        num_classes = logits.shape[1]
        if num_classes != dict_len:
            logger.warning(
                "Model output classes (%d) does not match dictionary length (%d)",
                num_classes, dict_len,
            )

        if logits.shape[0] == 0:
            return "", 0.0

        probs = _to_probabilities(logits)
        indices = np.argmax(logits, axis=1)

        chars = []
        confidences = []
        last_index = -1

        for t, index in enumerate(indices):
            index = int(index)
            if index == self.BLANK_INDEX or index == last_index:
                last_index = index
                continue

            if 0 <= index < dict_len:
                char = self.character[index]
                if index == dict_len - 1:
                    if char != self.UNK_TOKEN:
                        chars.append(" ")
                        confidences.append(float(probs[t, index]))
                else:
                    chars.append(char)
                    confidences.append(float(probs[t, index]))
            else:
                logger.warning(
                    "Decoded index %d out of bounds for dictionary (length %d) at t=%d",
                    index, dict_len, t,
                )

            last_index = index

        confidence = float(np.mean(confidences)) if confidences else 0.0
        return "".join(chars), confidence
