"""
mapview.controller - Feature placement and editing on the map.

One controller per mounted map.  User actions arrive as method calls;
the ones that reach the data store are coroutines.  Every entry into
EDITING mints a session token and every store completion checks it
before touching state, so an answer that arrives after the user closed
the panel (or unmounted the map) is dropped instead of reopening it.

Actions that make no sense in the current mode return False and change
nothing.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional

from forms.engine import AttributeForm, FormMode, FormState
from mapview.state import IDLE, InteractionMode, MapInteractionState
from mapview.surface import MapSurface, Marker
from schema.resolver import build_schema
from services.backend import BackendError, Coordinates, SaveResult

logger = logging.getLogger(__name__)

Mode = InteractionMode


class MapInteractionController:

    def __init__(self, surface: MapSurface, backend, project_id: str):
        self._surface = surface
        self._backend = backend             # AsyncBackend-compatible
        self.project_id = project_id

        self._state: MapInteractionState = IDLE
        self._marker: Optional[Marker] = None
        self._tokens = itertools.count(1)
        self._active_token: Optional[int] = None
        self._pending = False
        self._mounted = True

        self.feature_types: list[dict] = []
        self.form: Optional[AttributeForm] = None
        self.form_state: Optional[FormState] = None
        self._saved_form_state: Optional[FormState] = None
        self.form_errors: dict[str, str] = {}
        self.technical_id: Optional[str] = None
        self.photos: list[str] = []
        self.last_error: Optional[str] = None

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def state(self) -> MapInteractionState:
        return self._state

    @property
    def mode(self) -> InteractionMode:
        return self._state.mode

    @property
    def marker(self) -> Optional[Marker]:
        return self._marker

    @property
    def pending(self) -> bool:
        """A save or delete is in flight; "add element" is disabled meanwhile."""
        return self._pending

    @property
    def can_add_element(self) -> bool:
        return self._mounted and not self._pending and self.mode is not Mode.EDITING

    # ── Placement of a new feature ─────────────────────────────────────

    async def add_element(self) -> bool:
        """Open the feature-type picker with the types assigned to the project."""
        if not self.can_add_element or self.mode is Mode.SELECTING_TYPE:
            return False
        if self.mode is Mode.CONFIRMING_POSITION:
            self._discard_marker()

        token = self._new_session()
        self._state = MapInteractionState(mode=Mode.SELECTING_TYPE)
        self.feature_types = []
        try:
            types = await self._backend.fetch_assigned_feature_types(self.project_id)
        except BackendError as exc:
            if self._is_current(token):
                self.last_error = str(exc)
                self._reset()
            return False
        if not self._is_current(token):
            self._log_stale("feature type list")
            return False
        self.feature_types = list(types)
        return True

    def select_type(self, feature_type_id: str) -> bool:
        """Drop a draggable marker at the view centre for the chosen type."""
        if self.mode not in (Mode.SELECTING_TYPE, Mode.CONFIRMING_POSITION):
            return False
        if feature_type_id not in {t.get("id") for t in self.feature_types}:
            return False

        self._discard_marker()
        self._marker = self._surface.add_marker(self._surface.center())
        self._state = MapInteractionState(
            mode=Mode.CONFIRMING_POSITION, feature_type_id=feature_type_id,
        )
        return True

    def move_marker(self, position: Coordinates) -> bool:
        if self.mode is not Mode.CONFIRMING_POSITION or self._marker is None:
            return False
        self._marker.move_to(position)
        return True

    async def confirm_position(self) -> bool:
        """Fix the marker position as the new feature's coordinates and open the form."""
        if self.mode is not Mode.CONFIRMING_POSITION or self._marker is None:
            return False

        coords = self._marker.position
        feature_type_id = self._state.feature_type_id
        self._discard_marker()

        token = self._new_session()
        self._state = MapInteractionState(
            mode=Mode.EDITING, feature_type_id=feature_type_id, coordinates=coords,
        )
        return await self._load_form(token, feature_type_id, None, FormMode.WRITABLE)

    # ── Existing features ──────────────────────────────────────────────

    async def open_feature(self, feature_id: str) -> bool:
        """A click on a map point: show its attributes read-only."""
        if not self._mounted or self.mode is not Mode.IDLE or not feature_id:
            return False

        token = self._new_session()
        self._state = MapInteractionState(mode=Mode.EDITING, existing_id=feature_id)
        try:
            detail = await self._backend.fetch_feature_detail(feature_id)
        except BackendError as exc:
            if self._is_current(token):
                self.last_error = str(exc)
                self._reset()
            return False
        if not self._is_current(token):
            self._log_stale(f"detail of {feature_id}")
            return False

        self._state = MapInteractionState(
            mode=Mode.EDITING,
            existing_id=feature_id,
            feature_type_id=detail.feature_type_id,
            coordinates=detail.coordinates,
        )
        self.technical_id = detail.technical_id
        self.photos = [p.get("storage_path", "") for p in detail.photos]
        return await self._load_form(token, detail.feature_type_id, detail.attributes,
                                     FormMode.READONLY)

    def begin_edit(self) -> bool:
        """Unlock the open form; nothing is refetched."""
        if self.mode is not Mode.EDITING or self.form is None or self.form_state is None:
            return False
        self.form_state = self.form.unlock(self.form_state)
        return True

    def change_field(self, field_name: str, raw_value: Any) -> bool:
        if self.mode is not Mode.EDITING or self.form is None or self.form_state is None:
            return False
        before = self.form_state
        self.form_state = self.form.on_field_change(before, field_name, raw_value)
        if self.form_state is not before and self.form_errors:
            self.form_errors = self.form.validate(self.form_state)
        return self.form_state is not before

    # ── Leaving a session ──────────────────────────────────────────────

    def cancel(self) -> bool:
        """
        Back out one level: placement goes back to IDLE, a new feature is
        abandoned, an existing one in edit mode reverts to its read view.
        """
        mode = self.mode
        if mode is Mode.IDLE:
            return False
        if (mode is Mode.EDITING and self._state.existing_id
                and self.form_state is not None and self.form_state.writable):
            self.form_state = self._saved_form_state
            self.form_errors = {}
            return True
        self._reset()
        return True

    def close(self) -> bool:
        if self.mode is Mode.IDLE and self._marker is None:
            return False
        self._reset()
        return True

    def unmount(self) -> None:
        """Map torn down: release the marker and ignore every late answer."""
        self._reset()
        self._mounted = False

    # ── Store round-trips ──────────────────────────────────────────────

    async def save(self) -> bool:
        """
        Validate, then create or update.  On success the session ends and
        the point layer is refreshed; on failure the form stays open with
        `last_error` set.
        """
        if (self.mode is not Mode.EDITING or self.form is None
                or self.form_state is None or not self.form_state.writable
                or self._pending):
            return False

        self.form_errors = self.form.validate(self.form_state)
        if self.form_errors:
            return False

        token = self._active_token
        st = self._state
        self.last_error = None
        self._pending = True
        try:
            result = await self._backend.save_feature(
                self.project_id, st.feature_type_id, st.coordinates,
                self.form.payload(self.form_state), st.existing_id,
            )
        except BackendError as exc:
            result = SaveResult(success=False, error=str(exc))
        finally:
            self._pending = False

        if not self._is_current(token):
            self._log_stale("save")
            return False
        if not result.success:
            self.last_error = result.error or "Save failed"
            logger.error(f"Save of feature failed: {self.last_error}")
            return False

        self._reset()
        self._surface.refresh_points()
        return True

    async def delete(self) -> bool:
        """Delete the open existing feature; the caller has already confirmed."""
        feature_id = self._state.existing_id
        if self.mode is not Mode.EDITING or not feature_id or self._pending:
            return False

        token = self._active_token
        self.last_error = None
        self._pending = True
        try:
            await self._backend.delete_feature(feature_id)
        except BackendError as exc:
            if self._is_current(token):
                self.last_error = str(exc)
            logger.error(f"Delete of {feature_id} failed: {exc}")
            return False
        finally:
            self._pending = False

        if not self._is_current(token):
            self._log_stale("delete")
            return False
        self._reset()
        self._surface.refresh_points()
        return True

    async def upload_photo(self, image_bytes: bytes) -> Optional[str]:
        feature_id = self._state.existing_id
        if self.mode is not Mode.EDITING or not feature_id:
            return None

        token = self._active_token
        try:
            ref = await self._backend.upload_photo(feature_id, image_bytes)
        except BackendError as exc:
            if self._is_current(token):
                self.last_error = f"Photo upload failed: {exc}"
            return None
        if not self._is_current(token):
            self._log_stale("photo upload")
            return None
        self.photos.append(ref)
        return ref

    # ── Private helpers ────────────────────────────────────────────────

    async def _load_form(self, token: int, feature_type_id: str,
                         attributes: Optional[dict], mode: FormMode) -> bool:
        try:
            defs = await self._backend.fetch_schema(feature_type_id)
        except BackendError as exc:
            if self._is_current(token):
                self.last_error = str(exc)
                self._reset()
            return False
        if not self._is_current(token):
            self._log_stale(f"schema of {feature_type_id}")
            return False

        self.form = AttributeForm(build_schema(feature_type_id, defs))
        self.form_state = self.form.render(attributes, mode)
        self._saved_form_state = self.form.lock(self.form_state)
        self.form_errors = {}
        return True

    def _new_session(self) -> int:
        self._active_token = next(self._tokens)
        self.last_error = None
        return self._active_token

    def _is_current(self, token: Optional[int]) -> bool:
        return self._mounted and token is not None and token == self._active_token

    def _discard_marker(self) -> None:
        if self._marker is not None:
            self._marker.remove()
            self._marker = None

    def _reset(self) -> None:
        self._discard_marker()
        self._active_token = None
        self._state = IDLE
        self.feature_types = []
        self.form = None
        self.form_state = None
        self._saved_form_state = None
        self.form_errors = {}
        self.technical_id = None
        self.photos = []

    def _log_stale(self, what: str) -> None:
        logger.warning(f"Discarding late {what} result: session no longer active")
