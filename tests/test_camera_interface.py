"""Tests for the capture device interface."""

from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from wastescan.camera_interface import CameraDevice, CaptureConstraints, CaptureStream
from wastescan.errors import DeviceAccessError


@pytest.fixture
def samples_dir(tmp_path):
    image = np.full((120, 160, 3), 90, dtype=np.uint8)
    cv2.imwrite(str(tmp_path / "bottle.jpg"), image)
    return tmp_path


def fake_capture(opened=True, frame=None):
    capture = MagicMock()
    capture.isOpened.return_value = opened
    capture.read.return_value = (frame is not None, frame)
    capture.get.return_value = 10
    return capture


class TestSimulated:

    def test_acquire_reads_samples(self, samples_dir):
        constraints = CaptureConstraints(source='simulated', resolution=(64, 48),
                                         samples_dir=str(samples_dir))
        stream = CameraDevice().acquire(constraints)

        assert stream.kind == 'simulated'
        assert stream.is_ready()
        frame = stream.read_frame()
        assert frame.shape == (48, 64, 3)
        assert frame.dtype == np.uint8
        assert stream.frames_read == 1

    def test_no_samples_is_an_access_error(self, tmp_path):
        constraints = CaptureConstraints(source='simulated', samples_dir=str(tmp_path))
        with pytest.raises(DeviceAccessError):
            CameraDevice().acquire(constraints)

    def test_release_stops_stream(self, samples_dir):
        device = CameraDevice()
        stream = device.acquire(CaptureConstraints(source='simulated',
                                                   samples_dir=str(samples_dir)))
        device.release(stream)

        assert not stream.active
        assert not stream.is_ready()
        assert stream.read_frame() is None

    def test_stop_is_idempotent(self, samples_dir):
        stream = CameraDevice().acquire(CaptureConstraints(source='simulated',
                                                           samples_dir=str(samples_dir)))
        stream.stop()
        stream.stop()
        assert not stream.active


class TestOpenCVSources:

    def test_unavailable_usb_camera(self):
        capture = fake_capture(opened=False)
        with patch("wastescan.camera_interface.cv2.VideoCapture", return_value=capture):
            with pytest.raises(DeviceAccessError):
                CameraDevice().acquire(CaptureConstraints(source='usb'))
        capture.release.assert_called_once()

    def test_usb_camera_frames(self):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        capture = fake_capture(frame=frame)
        with patch("wastescan.camera_interface.cv2.VideoCapture", return_value=capture) as ctor:
            stream = CameraDevice().acquire(CaptureConstraints(source=2))

        ctor.assert_called_once_with(2)
        assert stream.kind == 'usb'
        assert stream.is_ready()
        assert stream.read_frame() is frame

        stream.stop()
        capture.release.assert_called_once()

    def test_usb_camera_without_frames_is_an_access_error(self):
        capture = fake_capture(opened=True, frame=None)
        with patch("wastescan.camera_interface.cv2.VideoCapture", return_value=capture):
            with pytest.raises(DeviceAccessError):
                CameraDevice().acquire(CaptureConstraints(source='usb'))
        capture.release.assert_called_once()

    def test_open_stream_is_not_ready_before_first_frame(self):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        stream = CaptureStream('usb', handle=fake_capture(frame=frame))

        assert not stream.is_ready()
        stream.read_frame()
        assert stream.is_ready()

    def test_auto_falls_back_to_usb_without_picamera(self):
        capture = fake_capture(frame=np.zeros((4, 4, 3), dtype=np.uint8))
        with patch("wastescan.camera_interface.PICAMERA2_AVAILABLE", False), \
                patch("wastescan.camera_interface.cv2.VideoCapture", return_value=capture) as ctor:
            stream = CameraDevice().acquire(CaptureConstraints(source='auto'))

        ctor.assert_called_once_with(0)
        assert stream.kind == 'usb'

    def test_pi_without_picamera_is_an_access_error(self):
        with patch("wastescan.camera_interface.PICAMERA2_AVAILABLE", False):
            with pytest.raises(DeviceAccessError):
                CameraDevice().acquire(CaptureConstraints(source='pi'))

    def test_missing_video_file(self, tmp_path):
        with pytest.raises(DeviceAccessError):
            CameraDevice().acquire(CaptureConstraints(source=str(tmp_path / "clip.mp4")))

    def test_video_loops_at_end(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00")
        first = np.ones((4, 4, 3), dtype=np.uint8)
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        capture = fake_capture()
        capture.read.side_effect = [(True, first), (False, None), (True, frame)]

        with patch("wastescan.camera_interface.cv2.VideoCapture", return_value=capture):
            stream = CameraDevice().acquire(CaptureConstraints(source=str(path)))

        assert stream.kind == 'video'
        assert stream.read_frame() is frame
        capture.set.assert_called_with(cv2.CAP_PROP_POS_FRAMES, 0)

    def test_unknown_source(self):
        with pytest.raises(DeviceAccessError):
            CameraDevice().acquire(CaptureConstraints(source='no-such-source'))


class TestRelease:

    def test_release_none_is_a_no_op(self):
        CameraDevice().release(None)

    def test_release_logs_stop_failures(self):
        stream = CaptureStream('usb', handle=MagicMock())
        stream.handle.release.side_effect = RuntimeError("device gone")

        CameraDevice().release(stream)

        assert not stream.active
        assert stream.handle is None

    def test_info(self):
        stream = CaptureStream('usb', handle=MagicMock(), source=0)
        info = stream.get_info()
        assert info["type"] == 'usb'
        assert info["active"] is True
