"""
Tests for the Flask API.
"""

import base64
import io

import pytest
import numpy as np
import cv2
from defectscan import create_app


def png_bytes(image: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode('.png', image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def app():
    return create_app({'TESTING': True})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def spot_png():
    """60x80 dark image with one bright 6x6 spot, encoded as PNG (BGR)."""
    img = np.zeros((60, 80, 3), dtype=np.uint8)
    img[10:16, 20:26] = (255, 255, 255)
    return png_bytes(img)


def upload(client, data, name='spot.png'):
    return client.post(
        '/api/image',
        data={'file': (io.BytesIO(data), name)},
        content_type='multipart/form-data',
    )


class TestParamsEndpoints:

    def test_health(self, client):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_default_params(self, client):
        response = client.get('/api/params')
        assert response.get_json() == {"min_spot_size_px": 40, "min_contrast_percent": 12.0}

    def test_configured_defaults(self):
        app = create_app({'TESTING': True, 'DEFAULT_MIN_SPOT_SIZE_PX': 7})
        response = app.test_client().get('/api/params')
        assert response.get_json()["min_spot_size_px"] == 7

    def test_update_params(self, client):
        response = client.post('/api/params', json={"min_spot_size_px": 10})
        assert response.status_code == 200
        assert response.get_json()["params"] == {"min_spot_size_px": 10, "min_contrast_percent": 12.0}

    @pytest.mark.parametrize("data", [
        {"min_spot_size_px": 0},
        {"min_contrast_percent": 0},
        {"min_contrast_percent": 150},
        {"min_contrast_percent": "lots"},
    ])
    def test_out_of_range_params(self, client, data):
        response = client.post('/api/params', json=data)
        assert response.status_code == 400
        assert "error" in response.get_json()
        assert client.get('/api/params').get_json()["min_spot_size_px"] == 40

    def test_params_require_json(self, client):
        response = client.post('/api/params', data="x")
        assert response.status_code == 400

    def test_reset_params(self, client):
        client.post('/api/params', json={"min_spot_size_px": 10})
        response = client.post('/api/params/reset')
        assert response.get_json()["params"]["min_spot_size_px"] == 40


class TestDetectEndpoint:

    def test_detect_without_image(self, client):
        response = client.post('/api/detect', json={})
        assert response.status_code == 400

    def test_upload_image(self, client, spot_png):
        response = upload(client, spot_png)
        assert response.status_code == 200
        body = response.get_json()
        assert body["width"] == 80
        assert body["height"] == 60

    def test_upload_rejects_bad_files(self, client):
        assert upload(client, b"not an image").status_code == 400
        assert upload(client, b"\x89PNG", name='spot.exe').status_code == 400

    def test_detect_uploaded_image(self, client, spot_png):
        upload(client, spot_png)
        response = client.post('/api/detect', json={"min_spot_size_px": 10})
        assert response.status_code == 200

        body = response.get_json()
        assert body["committed"] is True
        result = body["result"]
        assert result["width"] == 80
        assert result["height"] == 60
        assert result["component_count"] == 1

        comp = result["components"][0]
        assert comp["pixel_count"] == 36
        assert comp["bbox"] == [20, 10, 25, 15]
        assert comp["center_x"] == 22.5
        assert comp["center_y"] == 12.5
        assert comp["radius"] == 3.0
        assert len(comp["edge_points"]) == 20

        overlay = cv2.imdecode(np.frombuffer(base64.b64decode(body["overlay"]), np.uint8), cv2.IMREAD_COLOR)
        assert overlay.shape == (60, 80, 3)

    def test_detect_with_file_and_form_params(self, client, spot_png):
        response = client.post(
            '/api/detect',
            data={
                'file': (io.BytesIO(spot_png), 'spot.png'),
                'min_spot_size_px': '50',
                'overlay': 'false',
                'edges': 'false',
            },
            content_type='multipart/form-data',
        )
        assert response.status_code == 200
        body = response.get_json()
        assert body["result"]["component_count"] == 0
        assert "overlay" not in body

    def test_detect_with_base64_image(self, client, spot_png):
        payload = {
            "image": base64.b64encode(spot_png).decode('ascii'),
            "min_spot_size_px": 1,
            "overlay": False,
        }
        response = client.post('/api/detect', json=payload)
        assert response.status_code == 200
        assert response.get_json()["result"]["components"][0]["pixel_count"] == 36

    def test_detect_rejects_bad_params(self, client, spot_png):
        upload(client, spot_png)
        response = client.post('/api/detect', json={"min_contrast_percent": -5})
        assert response.status_code == 400

    def test_result_endpoint(self, client, spot_png):
        assert client.get('/api/result').status_code == 404

        upload(client, spot_png)
        client.post('/api/detect', json={"min_spot_size_px": 10, "overlay": False})
        response = client.get('/api/result?edges=false')
        assert response.status_code == 200
        comp = response.get_json()["result"]["components"][0]
        assert comp["pixel_count"] == 36
        assert "edge_points" not in comp

    def test_clear_image(self, client, spot_png):
        upload(client, spot_png)
        client.delete('/api/image')
        assert client.post('/api/detect', json={}).status_code == 400

    def test_rejected_detect_keeps_previous_image_and_result(self, client, spot_png):
        upload(client, spot_png)
        client.post('/api/detect', json={"min_spot_size_px": 10, "overlay": False})

        other = png_bytes(np.zeros((30, 30, 3), dtype=np.uint8))
        response = client.post(
            '/api/detect',
            data={'file': (io.BytesIO(other), 'other.png'), 'min_spot_size_px': '0'},
            content_type='multipart/form-data',
        )
        assert response.status_code == 400

        stored = client.get('/api/result')
        assert stored.status_code == 200
        assert stored.get_json()["result"]["width"] == 80

        rerun = client.post('/api/detect', json={"overlay": False}).get_json()["result"]
        assert (rerun["width"], rerun["height"]) == (80, 60)
        assert rerun["params"]["min_spot_size_px"] == 10

    def test_result_reports_its_own_generation(self, client, spot_png):
        upload(client, spot_png)
        run = client.post('/api/detect', json={"min_spot_size_px": 10, "overlay": False}).get_json()
        client.post('/api/params', json={"min_spot_size_px": 20})

        stored = client.get('/api/result').get_json()
        assert stored["generation"] == run["generation"]
        assert stored["result"]["params"]["min_spot_size_px"] == 10
