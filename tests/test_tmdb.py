import httpx
import pytest

from embedflow.metadata import tmdb
from embedflow.metadata.tmdb import MetadataError, TMDBClient
from embedflow.utils.cache_utils import ResponseCache

MOVIE = {
    "id": 438631,
    "title": "Dune",
    "overview": "Paul Atreides...",
    "release_date": "2021-09-15",
    "poster_path": "/d5NXSklXo0qyIYkgV94XAgMIckC.jpg",
    "backdrop_path": None,
}
SHOW = {"id": 1399, "name": "Game of Thrones", "first_air_date": "2011-04-17", "number_of_seasons": 8}
EPISODE = {"name": "Winter Is Coming", "episode_number": 1, "season_number": 1, "air_date": "2011-04-17", "id": 63056}


class FakeTMDB:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"status_code": 34})
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)


@pytest.fixture
def fake_tmdb(monkeypatch):
    fake = FakeTMDB(
        {
            "/3/movie/438631": MOVIE,
            "/3/tv/1399": SHOW,
            "/3/tv/1399/season/1/episode/1": EPISODE,
            "/3/search/movie": {"results": [{"id": 438631, "title": "Dune"}]},
            "/3/movie/1": "<html>maintenance</html>",
            "/3/movie/2": {"title": "No Id"},
            "/3/tv/3": [1, 2, 3],
            "/3/tv/1399/season/1/episode/2": {"episode_number": "second"},
        }
    )
    monkeypatch.setattr(
        tmdb, "create_httpx_client", lambda **kwargs: httpx.AsyncClient(transport=httpx.MockTransport(fake.handler))
    )
    return fake


@pytest.fixture
def client():
    return TMDBClient(api_key="secret-key", base_url="https://api.themoviedb.org/3", cache=ResponseCache(use_redis=False))


@pytest.mark.asyncio
async def test_movie_details(fake_tmdb, client):
    facts = await client.get_details(438631, "movie")

    assert facts.title == "Dune"
    assert facts.year == "2021"
    assert facts.number_of_seasons is None
    assert facts.poster_url == "https://image.tmdb.org/t/p/w500/d5NXSklXo0qyIYkgV94XAgMIckC.jpg"
    assert facts.backdrop_url is None
    assert fake_tmdb.requests[0].url.params["api_key"] == "secret-key"


@pytest.mark.asyncio
async def test_show_details(fake_tmdb, client):
    facts = await client.get_details(1399, "tv")

    assert facts.title == "Game of Thrones"
    assert facts.release_date == "2011-04-17"
    assert facts.number_of_seasons == 8


@pytest.mark.asyncio
async def test_details_are_cached(fake_tmdb, client):
    await client.get_details(1399, "tv")
    await client.get_details(1399, "tv")

    assert len(fake_tmdb.requests) == 1


@pytest.mark.asyncio
async def test_unknown_title(fake_tmdb, client):
    with pytest.raises(MetadataError):
        await client.get_details(404, "movie")


@pytest.mark.asyncio
async def test_missing_api_key(fake_tmdb, monkeypatch):
    monkeypatch.setattr(tmdb.settings, "tmdb_api_key", None)
    with pytest.raises(MetadataError):
        await TMDBClient(cache=ResponseCache(use_redis=False)).get_details(438631, "movie")
    assert fake_tmdb.requests == []


@pytest.mark.asyncio
async def test_search(fake_tmdb, client):
    results = await client.search("Dune", "movie")

    assert results["results"][0]["id"] == 438631
    assert fake_tmdb.requests[0].url.params["query"] == "Dune"


@pytest.mark.asyncio
async def test_episode(fake_tmdb, client):
    episode = await client.get_episode(1399, 1, 1)
    assert episode.name == "Winter Is Coming"
    assert episode.season_number == 1

    assert await client.get_episode(1399, 9, 1) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "tmdb_id, media_type",
    [(1, "movie"), (2, "movie"), (3, "tv")],
    ids=["invalid-json", "missing-id", "not-an-object"],
)
async def test_malformed_details_are_metadata_errors(fake_tmdb, client, tmdb_id, media_type):
    with pytest.raises(MetadataError):
        await client.get_details(tmdb_id, media_type)


@pytest.mark.asyncio
async def test_malformed_episode_is_unknown(fake_tmdb, client):
    assert await client.get_episode(1399, 1, 2) is None
