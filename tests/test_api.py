"""HTTP-level tests for the FastAPI service, run against an in-memory bank."""
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from main import DOCX_MIME, app, get_bank
from question_bank.image_utils import from_data_url
from question_bank.store import QuestionBank


@pytest.fixture
def bank():
    return QuestionBank()


@pytest.fixture
def client(bank):
    app.dependency_overrides[get_bank] = lambda: bank
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    assert client.get("/").status_code == 200


def test_tag_types_have_labels(client):
    types = client.get("/tag-types").json()
    assert [t["type"] for t in types] == [0, 1, 2, 3, 4, 5]
    assert types[5]["name"] == "多选"


def test_tag_crud(client):
    created = client.post("/tags", json={"name": "难度", "type": 2})
    assert created.status_code == 201
    tag_id = created.json()["id"]
    assert created.json()["type"] == 2

    patched = client.patch(f"/tags/{tag_id}", json={"color": "#ff0000"})
    assert patched.json()["color"] == "#ff0000"
    assert client.patch(f"/tags/{tag_id}", json={"type": "nope"}).status_code == 422

    assert [t["id"] for t in client.get("/tags").json()] == [tag_id]
    assert client.delete(f"/tags/{tag_id}").status_code == 204
    assert client.delete(f"/tags/{tag_id}").status_code == 404
    assert client.patch("/tags/missing", json={"name": "x"}).status_code == 404


def test_create_tag_rejects_unknown_type(client, bank):
    assert client.post("/tags", json={"name": "x", "type": 9}).status_code == 422
    assert bank.list_tags() == []


def test_question_crud_and_filter(client):
    level = client.post("/tags", json={"name": "难度", "type": 2}).json()["id"]
    first = client.post("/questions", json={"title": "一", "tags": {level: {"value": 2}}}).json()
    client.post("/questions", json={"title": "二", "tags": {level: {"value": 8}}})

    assert client.get(f"/questions/{first['id']}").json()["title"] == "一"
    assert client.get("/questions/missing").status_code == 404

    filtered = client.post("/questions/filter", json={"selectors": {level: [1, 5]}}).json()
    assert [q["title"] for q in filtered] == ["一"]

    patched = client.patch(f"/questions/{first['id']}", json={"content": r"$x^2$"})
    assert patched.json()["content"] == r"$x^2$"

    assert client.delete(f"/questions/{first['id']}").status_code == 204
    assert len(client.get("/questions").json()) == 1


def test_replace_and_merge(client):
    payload = {"tags": [{"id": "t1", "name": "章节"}], "questions": [{"id": "q1", "title": "旧"}]}
    assert client.post("/data/replace", json=payload).json()["questions"][0]["id"] == "q1"

    merged = client.post("/data/merge", json={"questions": [{"id": "q1", "title": "新"}, {"id": "q2"}]}).json()
    assert [(q["id"], q["title"]) for q in merged["questions"]] == [("q1", "旧"), ("q2", "")]
    assert client.get("/data").json()["tags"][0]["id"] == "t1"


def test_preview_parse_and_omml(client):
    preview = client.post("/preview", json={"text": r"$\frac{1}{2}$"}).json()
    assert preview["error"] is None and "<mfrac>" in preview["html"]

    nodes = client.post("/parse", json={"latex": r"\sqrt[3]{x}"}).json()["nodes"]
    assert nodes == [{"type": "radical", "content": [{"type": "run", "text": "x"}],
                      "degree": [{"type": "run", "text": "3"}]}]

    omml = client.post("/omml", json={"latex": "x^2", "alignment": "right"}).json()["omml"]
    assert "oMathPara" in omml and "right" in omml
    assert client.post("/omml", json={"latex": ""}).json() == {"omml": None}
    assert client.post("/omml", json={"latex": "x", "alignment": "middle"}).status_code == 400


def test_export_documents(client, bank):
    question = client.post("/questions", json={"title": r"求 $\sqrt{2}$"}).json()

    response = client.post("/export", json={"question_ids": [question["id"]]})
    assert response.status_code == 200
    assert response.headers["content-type"] == DOCX_MIME
    assert response.content[:2] == b"PK"

    assert client.post("/export", json={"question_ids": ["missing"]}).status_code == 404
    assert client.post("/export", json={}).status_code == 200

    sheet = client.post("/formula-sheet", json={"formulas": [r"\alpha^2"]})
    assert sheet.headers["content-type"] == DOCX_MIME


def test_compress_image(client):
    buffer = io.BytesIO()
    Image.new("RGB", (2400, 600), (10, 20, 30)).save(buffer, format="PNG")

    response = client.post("/images/compress", files={"file": ("big.png", buffer.getvalue(), "image/png")})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert max(Image.open(io.BytesIO(response.content)).size) <= 1000

    as_url = client.post("/images/compress", params={"as_data_url": True},
                         files={"file": ("big.png", buffer.getvalue(), "image/png")})
    data_url = as_url.json()["data_url"]
    assert data_url.startswith("data:image/jpeg;base64,")
    assert max(Image.open(io.BytesIO(from_data_url(data_url))).size) <= 1000

    bad = client.post("/images/compress", files={"file": ("x.png", b"garbage", "image/png")})
    assert bad.status_code == 400
    text = client.post("/images/compress", files={"file": ("x.txt", b"hello", "text/plain")})
    assert text.status_code == 400
