from __future__ import annotations

import logging
from dataclasses import dataclass

from src.app.services.location_ledger_service import LocationLedgerService
from src.domain.algorithms.geo_utils import round_km
from src.domain.exceptions.fares import NoLocationData
from src.domain.models import GeoPoint, JourneyPath

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class JourneyReconstructor:
    """Rebuilds the traveled path of a ride from the location ledger."""

    ledger: LocationLedgerService

    def reconstruct_path(
        self, vehicle_id: str, entry_sequence_no: int, exit_sequence_no: int
    ) -> tuple[GeoPoint, ...]:
        """Points from entry to exit inclusive, in ledger order.

        Missing sequence numbers are skipped; entry > exit yields ().
        """

        if entry_sequence_no > exit_sequence_no:
            logger.warning(
                "Entry #%s is after exit #%s on vehicle %s; empty path",
                entry_sequence_no,
                exit_sequence_no,
                vehicle_id,
            )
            return ()

        by_seq = {
            s.sequence_no: s
            for s in self.ledger.samples_between(
                vehicle_id, entry_sequence_no, exit_sequence_no
            )
        }

        path: list[GeoPoint] = []
        for seq in range(entry_sequence_no, exit_sequence_no + 1):
            sample = by_seq.get(seq)
            if sample is None:
                logger.warning("No location found for %s #%s", vehicle_id, seq)
                continue
            path.append(sample.point)
        return tuple(path)

    @staticmethod
    def travelled_distance_km(entry_cumulative_km: float, exit_cumulative_km: float) -> float:
        distance = round_km(exit_cumulative_km - entry_cumulative_km)
        if distance < 0:
            # Passed through unclamped so the anomaly shows up in the fare.
            logger.warning(
                "Negative travelled distance %s km (entry %s, exit %s)",
                distance,
                entry_cumulative_km,
                exit_cumulative_km,
            )
        return distance

    def reconstruct(
        self,
        vehicle_id: str,
        entry_sequence_no: int,
        entry_cumulative_distance_km: float,
    ) -> JourneyPath:
        """Journey from the stored entry pointer to the vehicle's latest sample."""

        exit_sample = self.ledger.latest_sample(vehicle_id)
        if exit_sample is None:
            raise NoLocationData(f"No location data for vehicle {vehicle_id}")

        points = self.reconstruct_path(
            vehicle_id, entry_sequence_no, exit_sample.sequence_no
        )
        distance = self.travelled_distance_km(
            entry_cumulative_distance_km, exit_sample.cumulative_distance_km
        )
        logger.info("Traveled distance on %s: %s km", vehicle_id, distance)

        return JourneyPath(
            entry_sequence_no=entry_sequence_no,
            exit_sequence_no=exit_sample.sequence_no,
            points=points,
            distance_travelled_km=distance,
            entry_sample=self.ledger.sample_at(vehicle_id, entry_sequence_no),
            exit_sample=exit_sample,
        )
