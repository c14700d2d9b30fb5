"""
Roster Data API Client
Fetches roster entries and outcome counts for one facility and period
from the hospital data service, and feeds them into a DatasetStore.

Endpoints:
  GET {base_url}/roster?facility=&year=&month=
  GET {base_url}/outcomes?facility=&year=&month=
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from .models import OutcomeRecord, Period, RosterEntry
from .normalize import normalize_physician_name
from .peers import DatasetStore, PeerLoader

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


class RosterDataClient:
    """
    Client for the roster / outcome data service
    """

    def __init__(
        self,
        api_token: str,
        base_url: str,
        normalizer: Callable[[str], str] = normalize_physician_name,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client

        Args:
            api_token: Bearer token
            base_url: Service base URL
            normalizer: Physician-name normalizer used to key records
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.normalizer = normalizer
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_token}',
            'Content-Type': 'application/json'
        })

    def _get(self, path: str, facility: str, period: Period) -> List[Dict]:
        endpoint = f"{self.base_url}/{path}"
        params = {
            'facility': facility,
            'year': period.year,
            'month': period.month,
        }

        logger.info(f"Fetching {path} for {facility} {period.key}")

        try:
            response = self.session.get(endpoint, params=params, timeout=self.timeout)
            response.raise_for_status()

            data = response.json()
            logger.info(f"Retrieved {len(data)} {path} rows for {facility} {period.key}")
            return data

        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching {path} for {facility} {period.key}: {e}")
            raise

    def get_roster(self, facility: str, period: Period) -> List[RosterEntry]:
        """
        Retrieve roster entries

        Returns:
            List of RosterEntry for the facility and period
        """
        entries = []
        for row in self._get("roster", facility, period):
            name = row.get("physician_name", "")
            entries.append(RosterEntry(
                physician_name=name,
                facility=row.get("facility") or facility,
                branch=row.get("branch", ""),
                action=row.get("action", ""),
                date=str(row.get("date", "")),
                start_time=str(row.get("start_time", "")),
                duration_minutes=float(row.get("duration_minutes") or 0),
                capacity=int(row.get("capacity") or 0),
                period=period,
                physician_key=self.normalizer(name),
            ))
        return entries

    def get_outcomes(self, facility: str, period: Period) -> List[OutcomeRecord]:
        """
        Retrieve outcome counts

        Returns:
            List of OutcomeRecord for the facility and period
        """
        records = []
        for row in self._get("outcomes", facility, period):
            name = row.get("physician_name", "")
            records.append(OutcomeRecord(
                physician_name=name,
                performed_surgeries=_optional_int(row.get("performed_surgeries")),
                exams_total=_optional_int(row.get("exams_total")),
                exams_booked=_optional_int(row.get("exams_booked")),
                exams_walk_in=_optional_int(row.get("exams_walk_in")),
                physician_key=self.normalizer(name),
            ))
        return records

    def load_into(self, store: DatasetStore, facility: str, period: Period) -> None:
        """Fetch both datasets, then store them. Nothing is stored unless both fetches succeed."""
        entries = self.get_roster(facility, period)
        outcomes = self.get_outcomes(facility, period)
        store.put_roster(facility, period, entries)
        store.put_outcomes(facility, period, outcomes)


def make_peer_loader(client: RosterDataClient, store: DatasetStore) -> PeerLoader:
    """Adapt a client to the coordinator's loader(facility, period) contract."""
    def loader(facility: str, period: Period) -> None:
        client.load_into(store, facility, period)
    return loader
