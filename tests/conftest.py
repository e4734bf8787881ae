"""
Pytest configuration and shared fixtures.

The fake sessions implement the same surface as ``ONNXInferenceBase``
(``input_names``, ``output_names``, ``run``, ``close``) so no model files
are needed.
"""
import cv2
import numpy as np
import pytest

from onnx_ocr.postprocess import CharacterDictionary

WORD = "hello"
DICTIONARY_LINES = ["h", "e", "l", "o"]


class FakeDetectionSession:
    """Detection stand-in: bright input pixels become text probability 1."""

    input_names = ["x"]
    output_names = ["sigmoid_0.tmp_0"]

    def __init__(self, mode="bright"):
        self.mode = mode
        self.calls = 0
        self.closed = False

    def run(self, input_feed):
        self.calls += 1
        tensor = next(iter(input_feed.values()))

        if self.mode == "error":
            raise RuntimeError("detector exploded")
        if self.mode == "missing":
            return {}

        if self.mode == "zeros":
            prob = np.zeros_like(tensor[:, :1])
        elif self.mode == "wrong_size":
            prob = np.zeros((1, 1, 7, 7), dtype=np.float32)
        else:
            # Red channel above zero after normalization means a bright pixel
            prob = (tensor[:, :1] > 0).astype(np.float32)
        return {self.output_names[0]: prob}

    def close(self):
        self.closed = True


class FakeRecognitionSession:
    """Recognition stand-in: always spells ``WORD`` regardless of the crop."""

    input_names = ["x"]
    output_names = ["softmax_0.tmp_0"]

    # blank h blank e l blank l o blank
    SEQUENCE = [0, 1, 0, 2, 3, 0, 3, 4, 0]

    def __init__(self, mode="ok", num_classes=len(DICTIONARY_LINES) + 2, peak=10.0):
        self.mode = mode
        self.num_classes = num_classes
        self.peak = peak
        self.inputs = []
        self.closed = False

    def run(self, input_feed):
        tensor = next(iter(input_feed.values()))
        self.inputs.append(tensor.shape)

        if self.mode == "error":
            raise RuntimeError("recognizer exploded")
        if self.mode == "missing":
            return {}

        logits = np.zeros((1, len(self.SEQUENCE), self.num_classes), dtype=np.float32)
        for t, index in enumerate(self.SEQUENCE):
            logits[0, t, index] = self.peak
        return {self.output_names[0]: logits}

    def close(self):
        self.closed = True


def draw_bars(size, bars):
    """Black RGB canvas with white filled rectangles given as (x1, y1, x2, y2)."""
    width, height = size
    img = np.zeros((height, width, 3), dtype=np.uint8)
    for x1, y1, x2, y2 in bars:
        cv2.rectangle(img, (x1, y1), (x2, y2), (255, 255, 255), thickness=-1)
    return img


@pytest.fixture
def detection_session():
    return FakeDetectionSession()


@pytest.fixture
def recognition_session():
    return FakeRecognitionSession()


@pytest.fixture
def character_dict():
    """Dictionary matching the fake recognizer: blank, h, e, l, o, space."""
    return CharacterDictionary.from_lines(DICTIONARY_LINES)


@pytest.fixture
def one_line_image():
    """A single bright text bar on a 200x100 canvas."""
    return draw_bars((200, 100), [(20, 40, 180, 60)])


@pytest.fixture
def two_line_image():
    """Two bars stacked vertically."""
    return draw_bars((200, 100), [(20, 20, 180, 35), (20, 65, 180, 80)])


@pytest.fixture
def two_word_image():
    """Two bars side by side on the same line."""
    return draw_bars((200, 100), [(120, 40, 190, 60), (10, 40, 80, 60)])


@pytest.fixture
def sample_image_path(tmp_path, one_line_image):
    """The one-line image written to disk as PNG."""
    from PIL import Image

    path = tmp_path / "one_line.png"
    Image.fromarray(one_line_image).save(path)
    return path
