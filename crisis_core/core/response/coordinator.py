"""
Response Coordinator

Composes the crisis reply for one turn: base script for the governing
category and tier, plus either local resources or a one-time location
inquiry.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from crisis_core.core.location.resolver import LocationResolver, is_location_sufficient
from crisis_core.core.resources.catalog import ResourceBundle, ResourceCatalog
from crisis_core.core.response.state import CompositionState, can_transition
from crisis_core.core.response.templates import (
    BASE_SCRIPTS,
    LOCAL_RESOURCES_INTRO,
    LOCATION_INQUIRIES,
    LOCATION_REPLY_INTRO,
    NATIONAL_RESOURCES_INTRO,
)
from crisis_core.core.session.models import SessionState
from crisis_core.safety.models import (
    Arbitration,
    CrisisType,
    LocationInfo,
    PhrasingTier,
    Severity,
)

logger = logging.getLogger(__name__)


@dataclass
class ComposedResponse:
    """Result of composing one crisis turn."""

    text: str
    crisis_type: CrisisType
    severity: Severity
    tier: PhrasingTier
    location: Optional[LocationInfo] = None
    bundle: Optional[ResourceBundle] = None
    needs_location: bool = False
    has_local_resources: bool = False
    inquiry_emitted: bool = False
    states: list[CompositionState] = field(default_factory=list)

    @property
    def state(self) -> CompositionState:
        return self.states[-1]


class ResponseCoordinator:
    """
    Builds the caller-visible crisis response.

    The resource catalog and location resolver are injected so the
    coordinator has no import-time dependency on their construction.

    Usage:
        coordinator = ResponseCoordinator(ResourceCatalog(), LocationResolver())
        composed = coordinator.compose(arbitration, session, location)
        print(composed.text)
    """

    def __init__(
        self,
        catalog: Optional[ResourceCatalog] = None,
        resolver: Optional[LocationResolver] = None,
    ):
        self.catalog = catalog or ResourceCatalog()
        self.resolver = resolver or LocationResolver()

    def compose(
        self,
        arbitration: Arbitration,
        session: SessionState,
        location: Optional[LocationInfo],
    ) -> ComposedResponse:
        """
        Run the composition state machine for a crisis turn.

        Mutates the session: advances the category tier and sets the
        asked-location / shared-resources flags.

        Args:
            arbitration: Governing crisis type and severity
            session: Session state for this turn
            location: Location known synchronously, if any

        Returns:
            ComposedResponse
        """
        states = [CompositionState.NEED_TYPE]
        crisis_type = arbitration.crisis_type
        self._advance(states, CompositionState.HAVE_TYPE)

        tier = session.advance_tier(crisis_type)
        base = BASE_SCRIPTS[crisis_type][tier]
        composed = ComposedResponse(
            text=base,
            crisis_type=crisis_type,
            severity=arbitration.severity,
            tier=tier,
            location=location,
            states=states,
        )

        if is_location_sufficient(location):
            self._advance(states, CompositionState.HAVE_LOCATION)
            bundle = self.catalog.resources_for(crisis_type, location)
            composed.bundle = bundle
            composed.has_local_resources = bundle.is_local
            composed.text = f"{base}\n\n{self._resources_block(bundle, location)}"
            if bundle.is_local:
                session.shared_local_resources = True
        else:
            self._advance(states, CompositionState.NEED_LOCATION)
            composed.needs_location = True
            if not session.asked_location:
                composed.text = f"{base}\n\n{LOCATION_INQUIRIES[crisis_type]}"
                composed.inquiry_emitted = True
                session.asked_location = True

        self._advance(states, CompositionState.COMPOSED)
        logger.info(
            f"Composed {crisis_type.value} response: tier={tier.value}, "
            f"path={states[-2].value}, inquiry={composed.inquiry_emitted}"
        )
        return composed

    def compose_location_reply(
        self,
        crisis_type: CrisisType,
        location: LocationInfo,
    ) -> Optional[str]:
        """
        Resources for a location supplied after the inquiry.

        Returns None when the location is outside every named region.
        """
        bundle = self.catalog.resources_for(crisis_type, location)
        if not bundle.is_local:
            return None
        intro = LOCATION_REPLY_INTRO.format(place=location.describe())
        return f"{intro}\n{bundle.to_text()}"

    def _resources_block(self, bundle: ResourceBundle, location: LocationInfo) -> str:
        if bundle.is_local:
            intro = LOCAL_RESOURCES_INTRO.format(place=location.describe())
        else:
            intro = NATIONAL_RESOURCES_INTRO
        return f"{intro}\n{bundle.to_text()}"

    @staticmethod
    def _advance(states: list[CompositionState], to_state: CompositionState) -> None:
        if not can_transition(states[-1], to_state):
            raise ValueError(f"Invalid composition transition {states[-1].value} -> {to_state.value}")
        states.append(to_state)
