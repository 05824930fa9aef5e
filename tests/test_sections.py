import pytest
from conftest import make_context
from conftest import make_profile
from conftest import make_repo

from gitcard.models import NOT_AVAILABLE
from gitcard.models import CardStats
from gitcard.render.fonts import FontSet
from gitcard.render.layout import Node
from gitcard.render.layout import render_svg
from gitcard.sections import EMPTY_LANGUAGES_TEXT
from gitcard.sections import EMPTY_REPOSITORIES_TEXT
from gitcard.sections import SECTION_DEFINITIONS
from gitcard.sections import UnknownSectionError
from gitcard.sections import bar_height_percent
from gitcard.sections import build_header_section
from gitcard.sections import build_repositories_section
from gitcard.sections import build_section
from gitcard.sections import build_stats_section
from gitcard.sections import top_starred_repositories


def texts(node: Node) -> list[str]:
    found = [node.content] if node.type == "text" else []
    for child in node.children:
        found.extend(texts(child))
    return found


def images(node: Node) -> list[Node]:
    found = [node] if node.type == "image" else []
    for child in node.children:
        found.extend(images(child))
    return found


def test_header_uses_sanitized_profile_text() -> None:
    profile = make_profile(name="Jane 🚀\x00 Doe", bio="Builds‍ tools 🛠️", twitter_username="jane")

    node = build_header_section(profile, "data:image/png;base64,AAAA")

    assert texts(node) == [
        "Jane Doe",
        "@octocat",
        "Builds tools",
        "@github",
        "San Francisco",
        "@jane",
    ]
    assert images(node)[0].style["radius"] == 48


def test_header_without_avatar_draws_placeholder() -> None:
    node = build_header_section(make_profile(name=None, bio=None, company=None, location=None), None)

    assert images(node) == []
    assert texts(node) == ["octocat", "@octocat"]


def test_stats_show_sentinel_values() -> None:
    stats = CardStats(
        total_stars=12345,
        total_forks=0,
        lang_counts={},
        commits_last_year=NOT_AVAILABLE,
        prs_last_year=NOT_AVAILABLE,
        issues_last_year=NOT_AVAILABLE,
    )

    node = build_stats_section(make_profile(), [make_repo("a", 1)], stats)

    assert texts(node) == [
        "Contributions",
        NOT_AVAILABLE,
        "Total Stars",
        "12,345",
        "Repositories",
        "1",
        "Followers",
        "1,234",
    ]


def test_languages_without_data_show_empty_state() -> None:
    context = make_context(
        stats=CardStats(
            total_stars=0,
            total_forks=0,
            lang_counts={},
            commits_last_year=0,
            prs_last_year=0,
            issues_last_year=0,
        )
    )

    node = build_section("languages", context)

    assert EMPTY_LANGUAGES_TEXT in texts(node)
    assert images(node) == []


def test_languages_legend_lists_rounded_percentages() -> None:
    context = make_context(
        stats=CardStats(
            total_stars=0,
            total_forks=0,
            lang_counts={"Python": 3, "Go": 1},
            commits_last_year=0,
            prs_last_year=0,
            issues_last_year=0,
        )
    )

    labels = texts(build_section("languages", context))

    assert labels == ["Language Distribution", "4", "Repos", "Python", "75%", "Go", "25%"]


def test_repositories_without_stars_show_empty_state() -> None:
    node = build_repositories_section([make_repo("quiet", 0), make_repo("fork", 0, fork=True)])

    assert texts(node) == ["Most Starred Repositories", EMPTY_REPOSITORIES_TEXT]


def test_repositories_are_ranked_and_labelled() -> None:
    repos = [make_repo(f"repo-{index}", stars) for index, stars in enumerate([3, 0, 1500, 40, 7, 2, 90])]
    repos.append(make_repo("a-really-long-repository-name", 1))

    top = top_starred_repositories(repos)
    labels = texts(build_repositories_section(repos))

    assert [repo["stargazers_count"] for repo in top] == [1500, 90, 40, 7, 3]
    assert labels[1:3] == ["1.5K", "repo-2"]
    assert "a-really-long-repository-name" not in labels


def test_long_repository_names_are_truncated() -> None:
    labels = texts(build_repositories_section([make_repo("a-really-long-repository-name", 10)]))

    assert labels[-1] == "a-really-long…"


@pytest.mark.parametrize(
    ("stars", "max_stars", "expected"),
    [
        (1000, 1000, 100),
        (100, 10000, 50),
        (1, 1000, 25),
        (1, 1, 25),
    ],
)
def test_bar_height_percent(stars: int, max_stars: int, expected: float) -> None:
    assert bar_height_percent(stars, max_stars) == pytest.approx(expected)


def test_unknown_section_raises() -> None:
    with pytest.raises(UnknownSectionError):
        build_section("nope", make_context())


@pytest.mark.parametrize("definition", SECTION_DEFINITIONS, ids=lambda section: section.id)
def test_every_section_lays_out(fonts: FontSet, definition) -> None:
    context = make_context(repos=[make_repo("hello-world", 1500), make_repo("tiny", 2)])
    tree = build_section(definition.id, context)

    svg = render_svg(tree, definition.width, fonts)

    assert f'width="{definition.width}"' in svg
    assert svg == render_svg(build_section(definition.id, context), definition.width, fonts)
