"""
Toll plaza metadata from the NHAI toll information service.

The service answers a JSON POST with an HTML fragment in the "d" key; the
first data row of table.tab holds the plaza details. Whatever goes wrong,
callers get "Unknown" values back and the record is still reported.
"""

from dataclasses import dataclass

import requests
from bs4 import BeautifulSoup
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import Config
from logger_config import get_logger

logger = get_logger(__name__)

UNKNOWN = "Unknown"

HEADERS = {
    "Content-Type": "application/json; charset=utf-8",
    "X-Requested-With": "XMLHttpRequest",
}

# Plazas whose state the field team already confirmed
PLAZA_STATES = {
    "Sosokhurd": "Jharkhand",
    "Bankapur": "Karnataka",
    "Vanagiri": "Karnataka",
    "Km. 288.00 Near Hitnal Vill.": "Karnataka",
    "Manavasi": "Tamil Nadu",
    "Poonambalapatti": "Tamil Nadu",
    "Kozhinjiipatti": "Tamil Nadu",
    "Rasampalayam Plaza": "Tamil Nadu",
    "Velanchettiyur": "Tamil Nadu",
    "Parsoni": "Bihar",
    "Pokhraira": "Bihar",
    "Dalsagar Toll Plaza": "Bihar",
    "TandBalidih": "Jharkhand",
    "Nagwan Toll Plaza": "Jharkhand",
    "Edalhatu": "Jharkhand",
    "Jharpokhria": "Odisha",
    "Padmanavpur": "Odisha",
    "Gurapalli": "Odisha",
    "Saidpur Patedha": "Bihar",
    "Saidpur Patedha Toll": "Bihar",
    "Kharik Toll": "Jharkhand",
    "Hazaribag": "Jharkhand",
    "Ghanghri(Kulgo)": "Jharkhand",
    "Bellyad": "West Bengal",
    "Halligudi Fee Plaza": "Karnataka",
    "Nalavida Toll": "Karnataka",
    "Kodai Road (Kozhinjipatti)": "Tamil Nadu",
    "Parsoni Khem": "Bihar",
    "Nalavadi Toll Plaza": "Karnataka",
}


@dataclass(frozen=True)
class PlazaDetails:
    state: str = UNKNOWN
    nh_no: str = UNKNOWN
    location: str = UNKNOWN
    section_stretch: str = UNKNOWN


def known_state(plaza_name):
    return PLAZA_STATES.get(plaza_name)


def parse_plaza_grid(html):
    """Pull state / NH no. / location / section out of the grid fragment."""
    soup = BeautifulSoup(html or "", "html.parser")
    rows = soup.select("table.tab tr")
    if len(rows) < 2:
        return PlazaDetails()

    cells = [td.get_text(strip=True) for td in rows[1].find_all("td")]

    def cell(index):
        return cells[index] if index < len(cells) and cells[index] else UNKNOWN

    return PlazaDetails(
        state=cell(1),
        nh_no=cell(2),
        location=cell(4),
        section_stretch=cell(5),
    )


class PlazaLookup:
    def __init__(self, url=None, session=None, timeout=30):
        self.url = url or Config.PLAZA_LOOKUP_URL
        self.session = session or requests.Session()
        self.timeout = timeout
        self._cache = {}

    @retry(
        retry=retry_if_exception_type(requests.RequestException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _fetch_grid(self, plaza_name):
        response = self.session.post(
            self.url, json={"TollName": plaza_name}, headers=HEADERS, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json().get("d", "")

    def details(self, plaza_name):
        if not plaza_name:
            return PlazaDetails()
        if plaza_name in self._cache:
            return self._cache[plaza_name]

        try:
            details = parse_plaza_grid(self._fetch_grid(plaza_name))
        except (requests.RequestException, ValueError) as e:
            logger.error(f"❌ Error fetching plaza info for {plaza_name}: {e}")
            details = PlazaDetails()

        if details.state == UNKNOWN and known_state(plaza_name):
            details = PlazaDetails(
                state=known_state(plaza_name),
                nh_no=details.nh_no,
                location=details.location,
                section_stretch=details.section_stretch,
            )

        self._cache[plaza_name] = details
        return details
