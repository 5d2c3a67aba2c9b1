from embedflow.schemas import CatalogCandidate, MediaFacts
from embedflow.utils.title_matcher import find_best_match, is_title_similar_enough


def movie(title, release_date=None):
    return MediaFacts(tmdb_id=1, media_type="movie", title=title, release_date=release_date)


def show(title, seasons=None, first_air_date=None):
    return MediaFacts(
        tmdb_id=2, media_type="tv", title=title, number_of_seasons=seasons, release_date=first_air_date
    )


def candidate(id, title, type="MOVIE", release_date=None, seasons=None):
    return CatalogCandidate(id=id, title=title, type=type, releaseDate=release_date, seasons=seasons)


def test_title_similarity():
    assert is_title_similar_enough("Dune", "  dune ")
    assert is_title_similar_enough("Dune", "Dune: Part Two")
    assert is_title_similar_enough("The Lord of the Rings", "Lord of the Rings The Return")
    assert not is_title_similar_enough("The Lord of the Rings", "The Hobbit An Unexpected Journey")
    assert not is_title_similar_enough("", "Dune")


def test_movie_exact_year_wins():
    candidates = [
        candidate("movie/dune-1984", "Dune", release_date="1984-12-14"),
        candidate("movie/dune-2021", "Dune", release_date="2021-09-15"),
    ]
    assert find_best_match(candidates, movie("Dune", "2021-10-22"), "MOVIE").id == "movie/dune-2021"


def test_movie_with_year_and_no_exact_match_is_rejected():
    candidates = [candidate("movie/dune-1984", "Dune", release_date="1984-12-14")]
    assert find_best_match(candidates, movie("Dune", "2021-10-22"), "MOVIE") is None


def test_movie_without_year_takes_first_similar_title():
    candidates = [
        candidate("tv/dune", "Dune", type="TVSERIES"),
        candidate("movie/other", "Something Else"),
        candidate("movie/dune-1984", "Dune", release_date="1984"),
    ]
    assert find_best_match(candidates, movie("Dune"), "MOVIE").id == "movie/dune-1984"


def test_no_relevant_type():
    candidates = [candidate("tv/dune", "Dune", type="TVSERIES")]
    assert find_best_match(candidates, movie("Dune"), "MOVIE") is None


def test_show_matches_on_season_count():
    candidates = [
        candidate("tv/office-uk", "The Office", type="TVSERIES", seasons=2),
        candidate("tv/office-us", "The Office", type="TVSERIES", seasons=9),
    ]
    assert find_best_match(candidates, show("The Office", seasons=9), "TVSERIES").id == "tv/office-us"


def test_show_takes_closest_season_count():
    candidates = [
        candidate("tv/office-uk", "The Office", type="TVSERIES", seasons=2),
        candidate("tv/office-us", "The Office", type="TVSERIES", seasons=8),
    ]
    assert find_best_match(candidates, show("The Office", seasons=9), "TVSERIES").id == "tv/office-us"


def test_show_uses_closest_year_without_season_count():
    candidates = [
        candidate("tv/a", "Shogun", type="TVSERIES", release_date="1980-09-15"),
        candidate("tv/b", "Shogun", type="TVSERIES", release_date="2023-01-01"),
    ]
    assert find_best_match(candidates, show("Shogun", first_air_date="2024-02-27"), "TVSERIES").id == "tv/b"


def test_show_falls_back_to_first_relevant_candidate():
    candidates = [
        candidate("movie/x", "Completely Different", type="MOVIE"),
        candidate("tv/y", "Unrelated Show Name Here", type="TVSERIES"),
    ]
    assert find_best_match(candidates, show("Shogun"), "TVSERIES").id == "tv/y"


def test_blank_titles_never_match():
    assert not is_title_similar_enough("   ", "Dune")
    assert not is_title_similar_enough("Dune", "")

    candidates = [candidate("movie/dune", "Dune"), candidate("movie/heat", "Heat")]
    assert find_best_match(candidates, movie(""), "MOVIE") is None
