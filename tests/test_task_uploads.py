from pathlib import Path

from tests._client import auth


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_create_task_with_image_stores_file(client, image_store, owner_id):
    r = client.post(
        "/tasks",
        data={"description": "with a picture"},
        files={"image": ("cat.png", PNG, "image/png")},
        headers=auth(owner_id),
    )

    assert r.status_code == 201, r.text
    path = r.json()["image_path"]
    assert path == str(Path(str(image_store.base_dir)) / "image-cat.png")
    assert Path(path).read_bytes() == PNG


def test_create_task_rejects_non_image_extension(client, owner_id):
    r = client.post(
        "/tasks",
        data={"description": "notes"},
        files={"image": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth(owner_id),
    )
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Please upload an image."

    assert client.get("/tasks", headers=auth(owner_id)).json() == []


def test_create_task_rejects_oversize_image(client, image_store, owner_id):
    too_big = b"\x00" * (image_store.max_bytes + 1)
    r = client.post(
        "/tasks",
        data={"description": "huge"},
        files={"image": ("huge.jpg", too_big, "image/jpeg")},
        headers=auth(owner_id),
    )
    assert r.status_code == 400, r.text
    assert client.get("/tasks", headers=auth(owner_id)).json() == []


def test_image_at_size_limit_is_accepted(client, image_store, owner_id):
    exact = b"\x00" * image_store.max_bytes
    r = client.post(
        "/tasks",
        data={"description": "exactly"},
        files={"image": ("exact.jpeg", exact, "image/jpeg")},
        headers=auth(owner_id),
    )
    assert r.status_code == 201, r.text


def test_unexpected_file_field_is_400(client, owner_id):
    r = client.post(
        "/tasks",
        data={"description": "wrong field"},
        files={"avatar": ("cat.png", PNG, "image/png")},
        headers=auth(owner_id),
    )
    assert r.status_code == 400, r.text


def test_patch_upload_overrides_image_path_field(client, image_store, owner_id):
    created = client.post("/tasks", json={"description": "plain"}, headers=auth(owner_id)).json()

    r = client.patch(
        f"/tasks/{created['id']}",
        data={"image_path": "somewhere/else.png", "completed": "true"},
        files={"image": ("dog.jpg", b"jpegbytes", "image/jpeg")},
        headers=auth(owner_id),
    )

    assert r.status_code == 200, r.text
    data = r.json()
    assert data["image_path"].endswith("image-dog.jpg")
    assert data["completed"] is True


def test_patch_with_disallowed_form_field_writes_no_image(client, image_store, owner_id):
    created = client.post("/tasks", json={"description": "plain"}, headers=auth(owner_id)).json()

    r = client.patch(
        f"/tasks/{created['id']}",
        data={"owner": "someone"},
        files={"image": ("bird.png", PNG, "image/png")},
        headers=auth(owner_id),
    )

    assert r.status_code == 400, r.text
    assert not (Path(str(image_store.base_dir)) / "image-bird.png").exists()


def test_same_filename_overwrites_previous_upload(client, owner_id):
    first = client.post(
        "/tasks",
        data={"description": "first"},
        files={"image": ("shared.png", b"one", "image/png")},
        headers=auth(owner_id),
    ).json()
    second = client.post(
        "/tasks",
        data={"description": "second"},
        files={"image": ("shared.png", b"two", "image/png")},
        headers=auth(owner_id),
    ).json()

    assert first["image_path"] == second["image_path"]
    assert Path(second["image_path"]).read_bytes() == b"two"


def test_patch_upload_by_another_owner_leaves_file_alone(client, image_store, owner_id, other_owner_id):
    created = client.post(
        "/tasks",
        data={"description": "mine"},
        files={"image": ("photo.png", b"original", "image/png")},
        headers=auth(owner_id),
    ).json()

    r = client.patch(
        f"/tasks/{created['id']}",
        data={"completed": "true"},
        files={"image": ("photo.png", b"intruder", "image/png")},
        headers=auth(other_owner_id),
    )
    assert r.status_code == 404, r.text
    assert Path(created["image_path"]).read_bytes() == b"original"


def test_patch_upload_for_missing_task_writes_nothing(client, image_store, owner_id):
    r = client.patch(
        "/tasks/00000000-0000-0000-0000-000000000000",
        files={"image": ("ghost.png", PNG, "image/png")},
        headers=auth(owner_id),
    )
    assert r.status_code == 404, r.text
    assert not (Path(str(image_store.base_dir)) / "image-ghost.png").exists()
