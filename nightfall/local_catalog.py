"""Curated catalog lanes bundled with the service."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .merge import dedupe
from .models import CatalogEntry
from .services.playback import full_server_list, two_embed_url
from .utils import placeholder_art

LANE_NAMES: tuple[str, ...] = ("trending", "movies", "tvshows", "newpopular", "mylist")


@dataclass(frozen=True)
class LocalCatalog:
    """Immutable curated lanes loaded once at startup."""

    trending: tuple[CatalogEntry, ...] = ()
    movies: tuple[CatalogEntry, ...] = ()
    tvshows: tuple[CatalogEntry, ...] = ()
    newpopular: tuple[CatalogEntry, ...] = ()
    mylist: tuple[CatalogEntry, ...] = ()

    @property
    def all(self) -> tuple[CatalogEntry, ...]:
        """Every curated title across lanes, deduplicated."""

        return tuple(
            dedupe(
                [
                    *self.trending,
                    *self.movies,
                    *self.tvshows,
                    *self.newpopular,
                    *self.mylist,
                ]
            )
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LocalCatalog":
        lanes: dict[str, tuple[CatalogEntry, ...]] = {}
        for lane in LANE_NAMES:
            raw_entries = data.get(lane) or []
            lanes[lane] = tuple(
                CatalogEntry.model_validate(entry)
                for entry in raw_entries
                if isinstance(entry, dict)
            )
        return cls(**lanes)


def load_local_catalog(path: str | Path | None = None) -> LocalCatalog:
    """Load curated lanes from a JSON file, or return the bundled defaults."""

    if path is None:
        return default_local_catalog()
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("Local catalog file must contain a JSON object of lanes")
    return LocalCatalog.from_mapping(data)


def _movie(
    title: str,
    tmdb_id: int,
    imdb_id: str,
    *,
    release_date: str,
    duration: str,
    rating: str,
    genre: str,
    director: str,
    country: str,
    cast: str,
    description: str,
) -> CatalogEntry:
    video_url = two_embed_url("movie", imdb_id)
    return CatalogEntry(
        title=title,
        external_id=str(tmdb_id),
        media_type="movie",
        poster_ref=placeholder_art("movie"),
        backdrop_ref=placeholder_art("movie", variant="backdrop"),
        description=description,
        release_date=release_date,
        duration_label=duration,
        rating_label=rating,
        genre_label=genre,
        director=director,
        country_label=country,
        cast_label=cast,
        video_url=video_url,
        servers=full_server_list("movie", imdb_id),
    )


def _show(
    title: str,
    tmdb_id: int,
    imdb_id: str,
    *,
    release_date: str,
    episodes_per_season: list[int],
    duration: str,
    rating: str,
    genre: str,
    director: str,
    country: str,
    cast: str,
    description: str,
) -> CatalogEntry:
    return CatalogEntry(
        title=title,
        external_id=str(tmdb_id),
        media_type="tv",
        poster_ref=placeholder_art("tv"),
        backdrop_ref=placeholder_art("tv", variant="backdrop"),
        description=description,
        release_date=release_date,
        duration_label=duration,
        rating_label=rating,
        genre_label=genre,
        director=director,
        country_label=country,
        cast_label=cast,
        seasons=len(episodes_per_season),
        episode_count=sum(episodes_per_season),
        episodes_per_season=episodes_per_season,
        servers=full_server_list("tv", imdb_id),
    )


def default_local_catalog() -> LocalCatalog:
    """Return the curated lanes shipped with the service."""

    inception = _movie(
        "Inception",
        27205,
        "tt1375666",
        release_date="2010-07-15",
        duration="2h 28m",
        rating="8.4",
        genre="Action, Science Fiction, Adventure",
        director="Christopher Nolan",
        country="United States of America, United Kingdom",
        cast="Leonardo DiCaprio, Joseph Gordon-Levitt, Elliot Page",
        description="A thief who steals corporate secrets through dream-sharing "
        "technology is given the inverse task of planting an idea.",
    )
    dark_knight = _movie(
        "The Dark Knight",
        155,
        "tt0468569",
        release_date="2008-07-16",
        duration="2h 32m",
        rating="8.5",
        genre="Drama, Action, Crime, Thriller",
        director="Christopher Nolan",
        country="United States of America, United Kingdom",
        cast="Christian Bale, Heath Ledger, Aaron Eckhart",
        description="Batman raises the stakes in his war on crime and meets a "
        "criminal mastermind known as the Joker.",
    )
    interstellar = _movie(
        "Interstellar",
        157336,
        "tt0816692",
        release_date="2014-11-05",
        duration="2h 49m",
        rating="8.4",
        genre="Adventure, Drama, Science Fiction",
        director="Christopher Nolan",
        country="United States of America, United Kingdom",
        cast="Matthew McConaughey, Anne Hathaway, Jessica Chastain",
        description="Explorers travel through a wormhole in space in an attempt "
        "to ensure humanity's survival.",
    )
    spirited_away = _movie(
        "Spirited Away",
        129,
        "tt0245429",
        release_date="2001-07-20",
        duration="2h 5m",
        rating="8.5",
        genre="Animation, Family, Fantasy",
        director="Hayao Miyazaki",
        country="Japan",
        cast="Rumi Hiiragi, Miyu Irino, Mari Natsuki",
        description="A young girl wanders into a world ruled by gods, witches "
        "and spirits, where humans are changed into beasts.",
    )
    dune_two = _movie(
        "Dune: Part Two",
        693134,
        "tt15239678",
        release_date="2024-02-27",
        duration="2h 47m",
        rating="8.2",
        genre="Science Fiction, Adventure",
        director="Denis Villeneuve",
        country="United States of America, Canada",
        cast="Timothée Chalamet, Zendaya, Rebecca Ferguson",
        description="Paul Atreides unites with the Fremen while on a path of "
        "revenge against the conspirators who destroyed his family.",
    )
    oppenheimer = _movie(
        "Oppenheimer",
        872585,
        "tt15398776",
        release_date="2023-07-19",
        duration="3h 1m",
        rating="8.1",
        genre="Drama, History",
        director="Christopher Nolan",
        country="United States of America, United Kingdom",
        cast="Cillian Murphy, Emily Blunt, Matt Damon",
        description="The story of J. Robert Oppenheimer's role in the "
        "development of the atomic bomb.",
    )
    breaking_bad = _show(
        "Breaking Bad",
        1396,
        "tt0903747",
        release_date="2008-01-20",
        episodes_per_season=[7, 13, 13, 13, 16],
        duration="47m",
        rating="8.9",
        genre="Drama, Crime",
        director="Vince Gilligan",
        country="US",
        cast="Bryan Cranston, Aaron Paul, Anna Gunn",
        description="A chemistry teacher diagnosed with terminal cancer turns "
        "to manufacturing methamphetamine.",
    )
    stranger_things = _show(
        "Stranger Things",
        66732,
        "tt4574334",
        release_date="2016-07-15",
        episodes_per_season=[8, 9, 8, 9],
        duration="50m",
        rating="8.6",
        genre="Drama, Sci-Fi & Fantasy, Mystery",
        director="The Duffer Brothers",
        country="US",
        cast="Millie Bobby Brown, Finn Wolfhard, Winona Ryder",
        description="When a young boy vanishes, a small town uncovers a mystery "
        "involving secret experiments and supernatural forces.",
    )
    last_of_us = _show(
        "The Last of Us",
        100088,
        "tt3581920",
        release_date="2023-01-15",
        episodes_per_season=[9, 7],
        duration="55m",
        rating="8.6",
        genre="Drama, Action & Adventure",
        director="Craig Mazin",
        country="US",
        cast="Pedro Pascal, Bella Ramsey",
        description="A hardened survivor escorts a teenage girl across a "
        "post-pandemic United States.",
    )
    arcane = _show(
        "Arcane",
        94605,
        "tt11126994",
        release_date="2021-11-06",
        episodes_per_season=[9, 9],
        duration="40m",
        rating="8.7",
        genre="Animation, Sci-Fi & Fantasy, Action & Adventure",
        director="Christian Linke",
        country="US",
        cast="Hailee Steinfeld, Ella Purnell, Kevin Alejandro",
        description="Two sisters fight on rival sides of a war between the "
        "utopian Piltover and the oppressed underground of Zaun.",
    )

    return LocalCatalog(
        trending=(dune_two, oppenheimer, last_of_us, arcane, inception),
        movies=(inception, dark_knight, interstellar, spirited_away, oppenheimer),
        tvshows=(breaking_bad, stranger_things, last_of_us, arcane),
        newpopular=(dune_two, oppenheimer, arcane, last_of_us),
        mylist=(interstellar, breaking_bad, spirited_away),
    )
