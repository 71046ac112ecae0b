"""
Parser for the BDRIS verification result page.

The result page renders every value as a <td> inside
<tbody class="text-uppercase">. Field positions are fixed; there are no
stable ids or labels to key on, so cells are read by index.

Verified cell layout (success page, 38 cells):
    [4]  Date of registration        [5]  Register office
    [6]  Date of issuance            [10] Date of birth
    [11] Birth registration number   [12] Sex
    [14] / [16] Registered name      (bangla / english)
    [19] / [21] Place of birth       (bangla / english)
    [23] / [25] Mother's name        (bangla / english)
    [27] / [29] Mother's nationality (bangla / english)
    [31] / [33] Father's name        (bangla / english)
    [35] / [37] Father's nationality (bangla / english)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

CELL_SELECTOR = "tbody.text-uppercase td"
EXPECTED_CELL_COUNT = 38


class UnexpectedPageShapeError(Exception):
    """Result page does not have the cell layout of a success page."""

    def __init__(self, cell_count: int, expected: int = EXPECTED_CELL_COUNT):
        self.cell_count = cell_count
        self.expected = expected
        super().__init__(
            f"Result page has {cell_count} cells, expected at least {expected}"
        )


@dataclass
class BilingualText:
    bangla: str
    english: str

    def to_dict(self) -> dict:
        return {"bangla": self.bangla, "english": self.english}


@dataclass
class ParentInfo:
    name: BilingualText
    nationality: BilingualText

    def to_dict(self) -> dict:
        return {"name": self.name.to_dict(), "nationality": self.nationality.to_dict()}


@dataclass
class BirthRecord:
    """Parsed birth registration record."""
    registration_date: str
    registration_office: str
    issuance_date: str
    date_of_birth: str
    birth_registration_number: str
    sex: str
    registered_name: BilingualText
    place_of_birth: BilingualText
    mother: ParentInfo
    father: ParentInfo

    def to_dict(self) -> dict:
        """Return the record in the API's camelCase JSON shape."""
        return {
            "registrationDate": self.registration_date,
            "registrationOffice": self.registration_office,
            "issuanceDate": self.issuance_date,
            "dateOfBirth": self.date_of_birth,
            "birthRegistrationNumber": self.birth_registration_number,
            "sex": self.sex,
            "registeredName": self.registered_name.to_dict(),
            "placeOfBirth": self.place_of_birth.to_dict(),
            "mother": self.mother.to_dict(),
            "father": self.father.to_dict(),
        }


def extract_cells(html: str) -> list[str]:
    """Return the stripped text of every result cell, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    return [td.get_text().strip() for td in soup.select(CELL_SELECTOR)]


def _pair(cells: list[str], bangla: int, english: int) -> BilingualText:
    return BilingualText(bangla=cells[bangla], english=cells[english])


def build_record(cells: list[str]) -> BirthRecord:
    """Map result cells to a BirthRecord by position.

    Raises UnexpectedPageShapeError if there are too few cells, which is
    what an error page (e.g. wrong CAPTCHA) looks like.
    """
    if len(cells) < EXPECTED_CELL_COUNT:
        raise UnexpectedPageShapeError(len(cells))
    if len(cells) > EXPECTED_CELL_COUNT:
        logger.warning(
            "Result page has %d cells, expected %d; extra cells ignored",
            len(cells), EXPECTED_CELL_COUNT,
        )

    return BirthRecord(
        registration_date=cells[4],
        registration_office=cells[5],
        issuance_date=cells[6],
        date_of_birth=cells[10],
        birth_registration_number=cells[11],
        sex=cells[12],
        registered_name=_pair(cells, 14, 16),
        place_of_birth=_pair(cells, 19, 21),
        mother=ParentInfo(
            name=_pair(cells, 23, 25),
            nationality=_pair(cells, 27, 29),
        ),
        father=ParentInfo(
            name=_pair(cells, 31, 33),
            nationality=_pair(cells, 35, 37),
        ),
    )


def parse_result_page(html: str) -> BirthRecord:
    return build_record(extract_cells(html))
