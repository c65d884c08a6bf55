"""
Integration tests for the drawserver HTTP API.

Uses FastAPI's TestClient against the module-level editor session, which
is reset before every test.
"""

import pytest
from fastapi.testclient import TestClient

from drawserver.main import app
from drawserver.session import editor_session


@pytest.fixture
def client() -> TestClient:
    editor_session.reset()
    return TestClient(app)


def create_node(client, label, cx, cy):
    response = client.post("/api/nodes", json={"label": label, "cx": cx, "cy": cy, "rx": 20, "ry": 20})
    assert response.status_code == 200
    return response.json()["node"]["id"]


class TestHealthAndDocument:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_empty_document(self, client):
        data = client.get("/api/document").json()
        assert data["document"] == {"shapes": []}
        assert data["history_state"] == "clean"

    def test_new_document_discards_history(self, client):
        create_node(client, "A", 0, 0)
        data = client.post("/api/document/new").json()
        assert data["document"]["shapes"] == []
        assert not data["can_undo"]


class TestNodesAndEdges:
    """Test node/edge CRUD and cascading delete through the API."""

    def test_create_and_update_node(self, client):
        node_id = create_node(client, "A", 0, 0)
        response = client.patch(f"/api/nodes/{node_id}", json={"label": "Start", "cx": 40})
        assert response.status_code == 200
        node = response.json()["node"]
        assert (node["label"], node["cx"]) == ("Start", 40)

        client.post("/api/undo")
        node = client.get(f"/api/nodes/{node_id}").json()["node"]
        assert (node["label"], node["cx"]) == ("A", 0)

    def test_missing_node(self, client):
        assert client.get("/api/nodes/nope").status_code == 404
        assert client.delete("/api/nodes/nope").status_code == 404
        assert client.patch("/api/nodes/nope", json={"label": "x"}).status_code == 404

    def test_invalid_node_update(self, client):
        node_id = create_node(client, "A", 0, 0)
        response = client.patch(f"/api/nodes/{node_id}", json={"rx": -1})
        assert response.status_code == 400

    def test_edge_routes_and_cascade(self, client):
        a = create_node(client, "A", 0, 0)
        b = create_node(client, "B", 100, 0)
        first = client.post("/api/edges", json={"source": a, "target": b, "direction": "forward"}).json()
        second = client.post("/api/edges", json={"from": a, "to": b}).json()
        assert first["path"].startswith("M 20 0 L")
        assert first["edge"]["curve_offset"] == 0
        assert second["edge"]["curve_offset"] != 0

        assert client.delete(f"/api/nodes/{a}").json()["success"]
        assert client.get(f"/api/edges/{first['edge']['id']}").status_code == 404

        client.post("/api/undo")
        restored = client.get(f"/api/edges/{first['edge']['id']}").json()
        assert restored["path"] == first["path"]
        assert restored["edge"]["direction"] == "forward"

    def test_edge_to_unknown_node(self, client):
        a = create_node(client, "A", 0, 0)
        response = client.post("/api/edges", json={"source": a, "target": "ghost"})
        assert response.status_code == 400

    def test_update_edge(self, client):
        a = create_node(client, "A", 0, 0)
        b = create_node(client, "B", 100, 0)
        edge_id = client.post("/api/edges", json={"source": a, "target": b}).json()["edge"]["id"]
        response = client.patch(f"/api/edges/{edge_id}", json={"line_type": "curve", "curve_amount": 30})
        assert response.status_code == 200
        assert " Q " in response.json()["path"]
        bad = client.patch(f"/api/edges/{edge_id}", json={"direction": "up"})
        assert bad.status_code == 400


class TestShapes:
    """Test primitive shape operations."""

    def _rect(self, client, x):
        data = {"type": "rectangle", "x": x, "y": 0, "width": 40, "height": 40}
        return client.post("/api/shapes", json=data).json()["shape"]["id"]

    def test_create_and_render(self, client):
        shape_id = self._rect(client, 0)
        data = client.get(f"/api/shapes/{shape_id}/render").json()
        assert data["element"]["tag"] == "rect"
        assert data["bounds"]["width"] == 40

    def test_graph_shapes_rejected(self, client):
        response = client.post("/api/shapes", json={"type": "node"})
        assert response.status_code == 400

    def test_distribute_then_undo(self, client):
        ids = [self._rect(client, x) for x in (0, 50, 200)]
        response = client.post("/api/shapes/distribute", json={"shape_ids": ids, "axis": "horizontal"})
        assert response.json()["success"]
        xs = [client.get(f"/api/shapes/{i}/render").json()["element"]["attrs"]["x"] for i in ids]
        assert xs == [0, 100, 200]
        client.post("/api/undo")
        xs = [client.get(f"/api/shapes/{i}/render").json()["element"]["attrs"]["x"] for i in ids]
        assert xs == [0, 50, 200]

    def test_move_rotate_style(self, client):
        shape_id = self._rect(client, 0)
        assert client.post("/api/shapes/move", json={"shape_ids": [shape_id], "dx": 5, "dy": 5}).status_code == 200
        assert client.post("/api/shapes/rotate", json={"shape_id": shape_id, "rotation": 45}).status_code == 200
        assert client.post(
            "/api/shapes/style", json={"shape_ids": [shape_id], "style": {"stroke": "#333333"}}
        ).status_code == 200
        attrs = client.get(f"/api/shapes/{shape_id}/render").json()["element"]["attrs"]
        assert attrs["x"] == 5
        assert attrs["stroke"] == "#333333"
        assert attrs["transform"].startswith("rotate(45")

    def test_unknown_shape_id(self, client):
        response = client.post("/api/shapes/move", json={"shape_ids": ["nope"], "dx": 1})
        assert response.status_code == 400

    def test_group_ungroup_and_zorder(self, client):
        ids = [self._rect(client, x) for x in (0, 50, 200)]
        group_id = client.post("/api/shapes/group", json={"shape_ids": ids[:2]}).json()["group_id"]
        order = [s["id"] for s in client.get("/api/document").json()["document"]["shapes"]]
        assert order == [group_id, ids[2]]

        assert client.post(f"/api/shapes/ungroup/{group_id}").status_code == 200
        client.post("/api/shapes/zorder", json={"shape_ids": [ids[0]], "operation": "bring_to_front"})
        order = [s["id"] for s in client.get("/api/document").json()["document"]["shapes"]]
        assert order == [ids[1], ids[2], ids[0]]

    def test_delete_shapes(self, client):
        shape_id = self._rect(client, 0)
        client.post("/api/shapes/delete", json={"shape_ids": [shape_id]})
        assert client.get(f"/api/shapes/{shape_id}/render").status_code == 404

    def test_group_holding_node_rejected(self, client):
        data = {"type": "group", "children": [{"type": "node", "id": "n1"}, {"type": "rectangle"}]}
        assert client.post("/api/shapes", json=data).status_code == 400
        assert not editor_session.document.graph.has_node("n1")
        assert client.get("/api/document").json()["document"]["shapes"] == []

    def test_apply_class(self, client):
        shape_id = self._rect(client, 0)
        response = client.post("/api/shapes/class", json={
            "shape_ids": [shape_id], "class_name": "warning", "style": {"stroke": "#ff0000"},
        })
        assert response.status_code == 200
        attrs = client.get(f"/api/shapes/{shape_id}/render").json()["element"]["attrs"]
        assert attrs["stroke"] == "#ff0000"
        client.post("/api/undo")
        attrs = client.get(f"/api/shapes/{shape_id}/render").json()["element"]["attrs"]
        assert attrs["stroke"] != "#ff0000"

    def test_polygon_vertices(self, client):
        data = {"type": "polygon", "points": [{"x": 0, "y": 0}, {"x": 10, "y": 0}, {"x": 5, "y": 10}]}
        shape_id = client.post("/api/shapes", json=data).json()["shape"]["id"]
        assert client.post(f"/api/shapes/{shape_id}/vertices", json={"x": 0, "y": 10}).status_code == 200
        assert client.patch(f"/api/shapes/{shape_id}/vertices/0", json={"x": -5, "y": 0}).status_code == 200
        assert client.delete(f"/api/shapes/{shape_id}/vertices/1").status_code == 200
        assert client.delete(f"/api/shapes/{shape_id}/vertices/0").status_code == 400

    def test_path_points(self, client):
        data = {"type": "path", "commands": [{"command": "M", "values": [0, 0]}, {"command": "L", "values": [100, 0]}]}
        shape_id = client.post("/api/shapes", json=data).json()["shape"]["id"]
        response = client.post(f"/api/shapes/{shape_id}/path-points", json={"segment_index": 1, "x": 30, "y": 10})
        assert response.status_code == 200
        assert client.delete(f"/api/shapes/{shape_id}/path-points/1").status_code == 200
        assert client.delete(f"/api/shapes/{shape_id}/path-points/1").status_code == 400


class TestLayoutAndQueries:

    def test_layout(self, client):
        a = create_node(client, "A", 0, 0)
        b = create_node(client, "B", 0, 0)
        client.post("/api/edges", json={"source": a, "target": b})
        response = client.post("/api/layout", json={"strategy": "tree"})
        assert response.json()["success"]
        node_b = client.get(f"/api/nodes/{b}").json()["node"]
        assert node_b["cy"] > 0

    def test_layout_unknown(self, client):
        create_node(client, "A", 0, 0)
        assert client.post("/api/layout", json={"strategy": "spiral"}).status_code == 400

    def test_hit_test(self, client):
        node_id = create_node(client, "A", 100, 100)
        assert client.get("/api/hit-test", params={"x": 105, "y": 100}).json()["shape_id"] == node_id
        assert client.get("/api/hit-test", params={"x": 500, "y": 500}).json()["shape_id"] is None

    def test_validate(self, client):
        create_node(client, "A", 0, 0)
        data = client.get("/api/validate").json()
        assert data["summary"]["valid"]
        assert data["summary"]["warnings"] == 1

    def test_undo_with_empty_history(self, client):
        assert client.post("/api/undo").json()["success"] is False


class TestWebSocket:

    def test_ping(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_json() == {"type": "pong"}
