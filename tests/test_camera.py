import numpy as np

from depthmesh.core.camera import CameraInfo, camera_from_dict, camera_to_dict


def _rot_z(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)


def test_inverse_calibration_inverts_calibration():
    for cam, (w, h) in [
        (CameraInfo(flen=1.2, ppoint=(0.48, 0.52)), (640, 480)),
        (CameraInfo(flen=0.9, paspect=1.1), (480, 640)),
    ]:
        K = cam.calibration(w, h)
        Kinv = cam.inverse_calibration(w, h)
        assert np.allclose(K @ Kinv, np.eye(3))


def test_focal_length_relative_to_larger_side():
    landscape = CameraInfo(flen=1.0).calibration(640, 480)
    assert np.isclose(landscape[0, 0], 640.0)
    assert np.isclose(landscape[1, 1], 640.0)

    portrait = CameraInfo(flen=1.0).calibration(480, 640)
    assert np.isclose(portrait[0, 0], 640.0)
    assert np.isclose(portrait[1, 1], 640.0)
    assert np.isclose(portrait[0, 2], 240.0)


def test_principal_pixel_maps_to_optical_axis():
    cam = CameraInfo(flen=1.0)
    ray = cam.inverse_calibration(64, 48) @ np.array([32.0, 24.0, 1.0])
    assert np.allclose(ray, [0.0, 0.0, 1.0])


def test_cam_to_world_inverts_world_to_cam():
    cam = CameraInfo(flen=1.0, rotation=_rot_z(0.3), translation=np.array([1.0, -2.0, 5.0]))
    assert np.allclose(cam.cam_to_world() @ cam.world_to_cam(), np.eye(4))
    center = cam.camera_center()
    assert np.allclose(cam.cam_to_world() @ np.array([0.0, 0.0, 0.0, 1.0]), np.append(center, 1.0))


def test_camera_dict_roundtrip_keeps_pose():
    cam = CameraInfo(flen=0.8, paspect=1.05, ppoint=(0.4, 0.6), rotation=_rot_z(-0.2), translation=np.array([0.1, 0.2, 0.3]))
    back = camera_from_dict(camera_to_dict(cam))
    assert back.flen == cam.flen
    assert back.ppoint == cam.ppoint
    assert np.allclose(back.rotation, cam.rotation)
    assert np.allclose(back.translation, cam.translation)
    assert not CameraInfo(flen=0.0).is_valid
