import asyncio
import base64
import time

import numpy as np
import pytest
from testkit import FakeImageModel, image_size, make_image_bytes, png_block

from src.application.use_cases.step_executor import StepExecutor, extract_image_bytes
from src.domain.entities.operation import Operation, OperationKind
from src.domain.errors import InvalidResponseFormat, NoImageReturned
from src.infrastructure.storage.image_codec import decode_to_numpy, to_data_uri

K = OperationKind


def _apply(executor, buffer, operation, references=()):
    return asyncio.run(executor.apply(buffer, operation, references))


@pytest.fixture()
def executor(image_model):
    return StepExecutor(image_model=image_model)


def test_rotate_90_swaps_dimensions(executor):
    src = make_image_bytes(8, 6)
    out = _apply(executor, src, Operation(K.ROTATE, {"degrees": 90}))
    assert image_size(src) == (8, 6)
    assert image_size(out) == (6, 8)


@pytest.mark.parametrize(
    "operation",
    [
        Operation(K.BRIGHTNESS, {"value": 20}),
        Operation(K.CONTRAST, {"value": -30}),
        Operation(K.SATURATION, {"value": 50}),
        Operation(K.HUE, {"value": 45}),
        Operation(K.FILTER, {"type": "grayscale"}),
        Operation(K.FILTER, {"type": "sepia"}),
        Operation(K.TINT, {"color": "#ffd5a8", "strength": 18}),
    ],
)
def test_local_operations_return_valid_image(executor, operation):
    out = _apply(executor, make_image_bytes(8, 6), operation)
    arr = decode_to_numpy(out)
    assert arr.shape == (6, 8, 3)
    assert arr.min() >= 0.0 and arr.max() <= 1.0


def test_out_of_range_brightness_is_clamped(executor):
    src = make_image_bytes(8, 6, color=(40, 40, 40))
    huge = _apply(executor, src, Operation(K.BRIGHTNESS, {"value": 500}))
    at_bound = _apply(executor, src, Operation(K.BRIGHTNESS, {"value": 100}))
    assert huge == at_bound

    tiny = _apply(executor, src, Operation(K.BRIGHTNESS, {"value": -500}))
    floor = _apply(executor, src, Operation(K.BRIGHTNESS, {"value": -90}))
    assert tiny == floor


def test_hue_wraps_around_the_catalog_range(executor):
    src = make_image_bytes(color=(200, 40, 20))
    assert _apply(executor, src, Operation(K.HUE, {"value": 200})) == _apply(
        executor, src, Operation(K.HUE, {"value": -160})
    )


def test_local_step_runs_off_the_event_loop(image_model):
    class SlowExecutor(StepExecutor):
        def transform(self, matrix, operation):
            time.sleep(0.3)
            return super().transform(matrix, operation)

    executor = SlowExecutor(image_model)

    async def go():
        loop = asyncio.get_running_loop()
        gaps = []

        async def heartbeat():
            last = loop.time()
            while True:
                await asyncio.sleep(0.005)
                now = loop.time()
                gaps.append(now - last)
                last = now

        beat = asyncio.create_task(heartbeat())
        await asyncio.sleep(0)
        out = await executor.apply(make_image_bytes(), Operation(K.HUE, {"value": 30}))
        beat.cancel()
        return out, gaps

    out, gaps = asyncio.run(go())
    assert out is not None
    assert len(gaps) > 10
    assert max(gaps) < 0.1


def test_out_of_range_tint_strength_is_clamped(executor):
    src = make_image_bytes()
    a = _apply(executor, src, Operation(K.TINT, {"color": "#00ff00", "strength": 1000}))
    b = _apply(executor, src, Operation(K.TINT, {"color": "#00ff00", "strength": 100}))
    assert a == b


def test_brightness_brightens(executor):
    src = make_image_bytes(color=(100, 100, 100))
    out = decode_to_numpy(_apply(executor, src, Operation(K.BRIGHTNESS, {"value": 50})))
    assert np.isclose(out.mean(), 150 / 255, atol=0.02)


def test_failure_returns_input_unchanged(executor):
    corrupt = b"not an image at all"
    out = _apply(executor, corrupt, Operation(K.BRIGHTNESS, {"value": 10}))
    assert out is corrupt


def test_local_operation_without_input_is_noop(executor):
    assert _apply(executor, None, Operation(K.HUE, {"value": 10})) is None


def test_google_edit_sends_buffer_and_prompt(executor, image_model):
    src = make_image_bytes()
    out = _apply(executor, src, Operation(K.GOOGLE_EDIT, {"prompt": "add a hat"}))
    assert image_size(out) == (10, 4)
    prompt, images = image_model.calls[0]
    assert prompt == "add a hat"
    assert images == [src]


def test_google_edit_with_references_only(executor, image_model):
    a, b = make_image_bytes(color=(1, 2, 3)), make_image_bytes(color=(4, 5, 6))
    _apply(executor, None, Operation(K.GOOGLE_EDIT, {"prompt": "merge"}), references=[a, b])
    assert image_model.calls[0][1] == [a, b]


def test_google_edit_without_image_returns_input():
    executor = StepExecutor(image_model=FakeImageModel(blocks=[{"type": "text", "text": "sorry"}]))
    src = make_image_bytes()
    assert _apply(executor, src, Operation(K.GOOGLE_EDIT, {"prompt": "x"})) is src


def test_google_edit_malformed_image_returns_input():
    executor = StepExecutor(image_model=FakeImageModel(blocks=[{"image_url": "data:image/png,nope"}]))
    src = make_image_bytes()
    assert _apply(executor, src, Operation(K.GOOGLE_EDIT, {"prompt": "x"})) is src


def test_extract_prefers_image_url_over_inline_data():
    url_png = make_image_bytes(3, 3, color=(255, 0, 0))
    block = {"image_url": to_data_uri(url_png), **png_block()}
    assert extract_image_bytes([block]) == url_png


def test_extract_accepts_nested_image_url_and_camel_case_inline():
    png = make_image_bytes(2, 2)
    assert extract_image_bytes([{"image_url": {"url": to_data_uri(png)}}]) == png
    camel = {"inlineData": {"data": base64.b64encode(png).decode(), "mimeType": "image/png"}}
    assert extract_image_bytes([{"type": "text"}, camel]) == png


def test_extract_errors():
    with pytest.raises(NoImageReturned):
        extract_image_bytes([{"type": "text", "text": "hi"}])
    with pytest.raises(NoImageReturned):
        extract_image_bytes([])
    with pytest.raises(InvalidResponseFormat):
        extract_image_bytes([{"image_url": "https://example.com/a.png"}])
    with pytest.raises(InvalidResponseFormat):
        extract_image_bytes([{"inline_data": {"data": "%%%not-base64%%%"}}])
    with pytest.raises(InvalidResponseFormat):
        extract_image_bytes([{"inline_data": {"mime_type": "image/png"}}])
