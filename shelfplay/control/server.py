"""
HTTP control API.

Exposes the playback controller as a small JSON API so any client (a web
page, curl, a remote) can drive the player.
"""

import json
import math
import logging
from typing import Any, Optional

from aiohttp import web

from shelfplay.config import ServerConfig
from shelfplay.library import LibraryError, TrackNotFoundError
from shelfplay.playback import AdvanceResult, PlaybackController

logger = logging.getLogger(__name__)


class BadRequestError(Exception):
    """Request body is missing or malformed."""

    pass


async def _read_json(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except json.JSONDecodeError as e:
        raise BadRequestError("Invalid JSON") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("Request body must be a JSON object")
    return data


def _number_field(data: dict[str, Any], name: str) -> float:
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BadRequestError(f"'{name}' must be a number")
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise BadRequestError(f"'{name}' must be finite")
    return number


class ControlServer:
    """
    Serves the control API.

    Routes:
        GET    /state               player status
        GET    /tracks?q=           tracks in play order, optionally filtered
        GET    /tracks/{id}/cover   embedded cover art
        POST   /play-pause, /next, /prev, /shuffle, /repeat, /mute
        POST   /seek {seconds}, /rate {rate?}, /volume {level}, /sleep {minutes}
        POST   /tracks/{id}/play
        DELETE /tracks/{id}
    """

    def __init__(self, player: PlaybackController, config: ServerConfig):
        self.player = player
        self.config = config

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def build_app(self) -> web.Application:
        """Create the aiohttp application with all routes."""
        app = web.Application(middlewares=[self._error_middleware])
        app.router.add_get("/state", self._handle_state)
        app.router.add_get("/tracks", self._handle_tracks)
        app.router.add_get("/tracks/{track_id:.+}/cover", self._handle_cover)
        app.router.add_post("/tracks/{track_id:.+}/play", self._handle_play_track)
        app.router.add_delete("/tracks/{track_id:.+}", self._handle_delete_track)
        app.router.add_post("/play-pause", self._handle_play_pause)
        app.router.add_post("/next", self._handle_next)
        app.router.add_post("/prev", self._handle_prev)
        app.router.add_post("/seek", self._handle_seek)
        app.router.add_post("/shuffle", self._handle_shuffle)
        app.router.add_post("/repeat", self._handle_repeat)
        app.router.add_post("/rate", self._handle_rate)
        app.router.add_post("/volume", self._handle_volume)
        app.router.add_post("/mute", self._handle_mute)
        app.router.add_post("/sleep", self._handle_sleep)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.config.bind_address, self.config.http_port)
        await self._site.start()
        logger.info(
            f"Control API listening on http://{self.config.bind_address}:{self.config.http_port}"
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        logger.info("Control API stopped")

    @web.middleware
    async def _error_middleware(self, request: web.Request, handler) -> web.StreamResponse:
        try:
            return await handler(request)
        except BadRequestError as e:
            return web.json_response({"error": str(e)}, status=400)
        except TrackNotFoundError as e:
            return web.json_response({"error": str(e)}, status=404)
        except LibraryError as e:
            return web.json_response({"error": str(e)}, status=409)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Error handling {request.method} {request.path}: {e}")
            return web.json_response({"error": str(e)}, status=500)

    def _state_response(self) -> web.Response:
        return web.json_response(self.player.status())

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def _handle_state(self, request: web.Request) -> web.Response:
        return self._state_response()

    async def _handle_tracks(self, request: web.Request) -> web.Response:
        """GET /tracks?q=text"""
        text = request.query.get("q", "")
        current = self.player.queue.current_index
        tracks = []
        for index, track in self.player.search(text):
            entry = track.to_dict()
            entry["library_index"] = index
            entry["current"] = index == current
            tracks.append(entry)
        return web.json_response({"tracks": tracks, "count": len(tracks)})

    async def _handle_cover(self, request: web.Request) -> web.Response:
        track_id = request.match_info["track_id"]
        index = self.player.library.index_of(track_id)
        track = self.player.library.get(index) if index is not None else None
        if track is None:
            raise TrackNotFoundError(f"Track not in library: {track_id}")
        if not track.cover_art:
            return web.json_response({"error": "No cover art"}, status=404)
        return web.Response(
            body=track.cover_art,
            content_type=track.cover_mime or "image/jpeg",
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def _handle_play_pause(self, request: web.Request) -> web.Response:
        await self.player.toggle_play_pause()
        return self._state_response()

    async def _handle_next(self, request: web.Request) -> web.Response:
        result = await self.player.next()
        if result == AdvanceResult.NO_TRACK:
            return web.json_response({"error": "Nothing to play"}, status=409)
        return self._state_response()

    async def _handle_prev(self, request: web.Request) -> web.Response:
        result = await self.player.prev()
        if result == AdvanceResult.NO_TRACK:
            return web.json_response({"error": "Nothing to play"}, status=409)
        return self._state_response()

    async def _handle_seek(self, request: web.Request) -> web.Response:
        """POST /seek {"seconds": 42.5}"""
        seconds = _number_field(await _read_json(request), "seconds")
        if not await self.player.seek(seconds):
            return web.json_response({"error": "No track selected"}, status=409)
        return self._state_response()

    async def _handle_shuffle(self, request: web.Request) -> web.Response:
        await self.player.toggle_shuffle()
        return self._state_response()

    async def _handle_repeat(self, request: web.Request) -> web.Response:
        await self.player.cycle_repeat()
        return self._state_response()

    async def _handle_rate(self, request: web.Request) -> web.Response:
        """POST /rate {"rate": 1.25}; without a rate, cycles to the next one."""
        data = await _read_json(request)
        if "rate" in data:
            rate = _number_field(data, "rate")
            if rate <= 0:
                raise BadRequestError("'rate' must be positive")
            await self.player.set_playback_rate(rate)
        else:
            await self.player.cycle_playback_rate()
        return self._state_response()

    async def _handle_volume(self, request: web.Request) -> web.Response:
        """POST /volume {"level": 0.5}"""
        level = _number_field(await _read_json(request), "level")
        if not 0.0 <= level <= 1.0:
            raise BadRequestError("'level' must be between 0 and 1")
        await self.player.set_volume(level)
        return self._state_response()

    async def _handle_mute(self, request: web.Request) -> web.Response:
        await self.player.toggle_mute()
        return self._state_response()

    async def _handle_sleep(self, request: web.Request) -> web.Response:
        """POST /sleep {"minutes": 30}; 0 clears the timer."""
        minutes = _number_field(await _read_json(request), "minutes")
        self.player.set_sleep_timer(minutes)
        return self._state_response()

    async def _handle_play_track(self, request: web.Request) -> web.Response:
        track_id = request.match_info["track_id"]
        if not await self.player.play_track(track_id):
            raise TrackNotFoundError(f"Track not in library: {track_id}")
        return self._state_response()

    async def _handle_delete_track(self, request: web.Request) -> web.Response:
        track_id = request.match_info["track_id"]
        await self.player.delete_track(track_id)
        logger.info(f"Deleted track {track_id}")
        return self._state_response()
