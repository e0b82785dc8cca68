import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.models import Author


@pytest.mark.asyncio
async def test_add_resource(post_operations):
    """Test adding a resource returns it in atomic:results."""
    response = await post_operations([
        {
            "op": "add",
            "data": {
                "type": "authors",
                "attributes": {"name": "Ada", "email": "ada@example.com"},
            },
        },
    ])
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.api+json")
    assert 'ext="https://jsonapi.org/ext/atomic"' in response.headers["content-type"]

    results = response.json()["atomic:results"]
    assert len(results) == 1
    resource = results[0]["data"]
    assert resource["type"] == "authors"
    assert resource["id"]
    assert resource["attributes"] == {"name": "Ada", "email": "ada@example.com"}
    assert resource["links"]["self"] == f"/api/authors/{resource['id']}"


@pytest.mark.asyncio
async def test_add_resource_with_client_id(post_operations):
    """Test a client-generated id is kept."""
    response = await post_operations([
        {
            "op": "add",
            "data": {"type": "tags", "id": "tag-python", "attributes": {"name": "python"}},
        },
    ])
    assert response.status_code == 200
    assert response.json()["atomic:results"][0]["data"]["id"] == "tag-python"


@pytest.mark.asyncio
async def test_add_existing_client_id_conflicts(post_operations, test_author):
    """Test adding a resource whose id already exists."""
    response = await post_operations([
        {
            "op": "add",
            "data": {"type": "authors", "id": test_author.gid, "attributes": {"name": "Copy"}},
        },
    ])
    assert response.status_code == 409
    error = response.json()["errors"][0]
    assert error["code"] == "conflict"
    assert error["source"]["pointer"] == "/atomic:operations/0"


@pytest.mark.asyncio
async def test_update_resource(post_operations, test_author):
    """Test updating a resource."""
    response = await post_operations([
        {
            "op": "update",
            "ref": {"type": "authors", "id": test_author.gid},
            "data": {
                "type": "authors",
                "id": test_author.gid,
                "attributes": {"name": "Renamed"},
            },
        },
    ])
    assert response.status_code == 200
    resource = response.json()["atomic:results"][0]["data"]
    assert resource["id"] == test_author.gid
    assert resource["attributes"]["name"] == "Renamed"
    assert resource["attributes"]["email"] == "author@example.com"


@pytest.mark.asyncio
async def test_update_resource_addressed_by_data(post_operations, test_author):
    """Test an update without ref targets the resource named in data."""
    response = await post_operations([
        {
            "op": "update",
            "data": {"type": "authors", "id": test_author.gid, "attributes": {"email": "new@example.com"}},
        },
    ])
    assert response.status_code == 200
    assert response.json()["atomic:results"][0]["data"]["attributes"]["email"] == "new@example.com"


@pytest.mark.asyncio
async def test_update_by_href(post_operations, test_author):
    """Test targeting a resource with href."""
    response = await post_operations([
        {
            "op": "update",
            "href": f"/api/authors/{test_author.gid}",
            "data": {"type": "authors", "id": test_author.gid, "attributes": {"name": "Via Href"}},
        },
    ])
    assert response.status_code == 200
    assert response.json()["atomic:results"][0]["data"]["attributes"]["name"] == "Via Href"


@pytest.mark.asyncio
async def test_update_missing_resource(post_operations):
    """Test updating a resource that does not exist."""
    response = await post_operations([
        {
            "op": "update",
            "ref": {"type": "authors", "id": "missing"},
            "data": {"type": "authors", "id": "missing", "attributes": {"name": "Nobody"}},
        },
    ])
    assert response.status_code == 404
    error = response.json()["errors"][0]
    assert error["code"] == "not_found"
    assert error["source"]["pointer"] == "/atomic:operations/0"


@pytest.mark.asyncio
async def test_remove_only_batch_returns_no_content(post_operations, db_session: AsyncSession, test_author):
    """Test a batch with only empty results answers 204."""
    response = await post_operations([
        {"op": "remove", "ref": {"type": "authors", "id": test_author.gid}},
    ])
    assert response.status_code == 204
    assert response.content == b""

    count = await db_session.scalar(select(func.count()).select_from(Author))
    assert count == 0


@pytest.mark.asyncio
async def test_mixed_results_keep_one_entry_per_operation(post_operations, test_author):
    """Test results line up with operations, empty where nothing is returned."""
    response = await post_operations([
        {"op": "add", "data": {"type": "tags", "attributes": {"name": "fresh"}}},
        {"op": "remove", "ref": {"type": "authors", "id": test_author.gid}},
    ])
    assert response.status_code == 200
    results = response.json()["atomic:results"]
    assert len(results) == 2
    assert results[0]["data"]["attributes"]["name"] == "fresh"
    assert results[1] == {}


@pytest.mark.asyncio
async def test_unknown_attribute_rejected(post_operations):
    """Test an attribute the resource type does not have."""
    response = await post_operations([
        {"op": "add", "data": {"type": "authors", "attributes": {"name": "Ada", "age": 36}}},
    ])
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "validation_error"
    assert error["source"]["pointer"] == "/atomic:operations/0/data/attributes/age"


@pytest.mark.asyncio
async def test_non_scalar_attribute_rejected(post_operations, db_session: AsyncSession):
    """Test a structured value for a plain attribute fails before anything is stored."""
    response = await post_operations([
        {"op": "add", "data": {"type": "tags", "attributes": {"name": "kept"}}},
        {"op": "add", "data": {"type": "authors", "attributes": {"name": {"first": "A"}}}},
    ])
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "validation_error"
    assert error["source"]["pointer"] == "/atomic:operations/1/data/attributes/name"
    assert "INSERT" not in error["detail"]

    count = await db_session.scalar(select(func.count()).select_from(Author))
    assert count == 0


@pytest.mark.asyncio
async def test_unknown_resource_type_rejected(post_operations):
    """Test a resource type the server does not know."""
    response = await post_operations([
        {"op": "add", "data": {"type": "widgets", "attributes": {}}},
    ])
    assert response.status_code == 400
    assert response.json()["errors"][0]["source"]["pointer"] == "/atomic:operations/0/data/type"


@pytest.mark.asyncio
async def test_malformed_document_rejected(client, atomic_headers):
    """Test a body that is not JSON."""
    response = await client.post("/api/operations", content=b"{not json", headers=atomic_headers)
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "invalid_request"
    assert error["source"]["pointer"] == "/"


@pytest.mark.asyncio
async def test_response_varies_on_accept(post_operations):
    """Test responses of the atomic endpoint declare Vary: Accept."""
    response = await post_operations([
        {"op": "add", "data": {"type": "tags", "attributes": {"name": "vary"}}},
    ])
    assert response.status_code == 200
    assert "accept" in response.headers["vary"].lower()


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health check endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
