"""Pygame status window for a running ColonyBot.

Draws the last published turn (anthill, own units, enemies, resources
and the threat-map interest overlay) on a hex layout centred on the
anthill.  The viewer only reads ``bot.latest``; it never touches the
planners.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
import pygame

if TYPE_CHECKING:
    from formicary.runtime.engine import ColonyBot, TurnReport

from formicary.grid.position import Position
from formicary.world.entities import ResourceType, UnitType

# Colour palette
_BG = (25, 22, 18)
_HOME = (120, 90, 50)
_ENEMY_BASE = (150, 40, 40)
_ENEMY = (255, 70, 70)
_TEXT = (200, 200, 200)

# Own unit colours by type
_UNIT_COLOURS: dict[UnitType, tuple[int, int, int]] = {
    UnitType.WORKER: (100, 200, 100),
    UnitType.SOLDIER: (100, 150, 255),
    UnitType.SCOUT: (230, 230, 120),
}

_RESOURCE_COLOURS: dict[ResourceType, tuple[int, int, int]] = {
    ResourceType.APPLE: (200, 60, 60),
    ResourceType.BREAD: (210, 170, 90),
    ResourceType.NECTAR: (240, 200, 40),
}

# Threat interest colour (orange glow)
_THREAT_COLOUR = np.array([255, 120, 0], dtype=np.float64)

_SQRT3 = math.sqrt(3.0)


class StatusViewer:
    """Renders a ColonyBot's latest turn into a Pygame window.

    Attributes:
        bot: The bot being watched.
        hex_size: Pixel radius of one hex.
        refresh_interval: Seconds between redraws.
        screen: The Pygame display surface.
    """

    def __init__(
        self,
        bot: ColonyBot,
        hex_size: int = 8,
        refresh_interval: float = 1.0,
        width: int = 900,
        height: int = 700,
    ) -> None:
        """Initialise the viewer.

        Args:
            bot: The bot whose published turns are shown.
            hex_size: Pixel radius per hex cell.
            refresh_interval: Seconds between redraws.
            width: Map area width in pixels.
            height: Window height in pixels.
        """
        self.bot = bot
        self.hex_size = hex_size
        self.refresh_interval = refresh_interval
        self._panel_width = 260
        self._map_w = width
        self._win_w = width + self._panel_width
        self._win_h = height
        self._since_refresh = refresh_interval

        pygame.init()
        self.screen = pygame.display.set_mode((self._win_w, self._win_h))
        pygame.display.set_caption("Formicary")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True
        self.paused = False

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events, redraw every refresh interval.

        Closing the window stops the bot as well.

        Args:
            fps: Target frames per second.
        """
        while self.running and not self.bot.stopped:
            self._since_refresh += self.clock.tick(fps) / 1000.0
            self._handle_events()
            if not self.paused and self._since_refresh >= self.refresh_interval:
                self._since_refresh = 0.0
                self._draw()

        self.bot.stop()
        pygame.quit()

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif event.key in (pygame.K_PLUS, pygame.K_EQUALS):
                    self.hex_size = min(32, self.hex_size + 1)
                elif event.key == pygame.K_MINUS:
                    self.hex_size = max(3, self.hex_size - 1)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def to_pixel(self, pos: Position, centre: Position) -> tuple[int, int]:
        """Project a pointy-top axial position relative to ``centre``."""
        dq = pos.q - centre.q
        dr = pos.r - centre.r
        x = self.hex_size * _SQRT3 * (dq + dr / 2.0) + self._map_w / 2.0
        y = self.hex_size * 1.5 * dr + self._win_h / 2.0
        return int(round(x)), int(round(y))

    def _hex_corners(self, cx: int, cy: int) -> list[tuple[float, float]]:
        size = self.hex_size
        corners = []
        for i in range(6):
            angle = math.radians(60 * i - 30)
            corners.append((cx + size * math.cos(angle), cy + size * math.sin(angle)))
        return corners

    def _on_map(self, x: int, y: int) -> bool:
        return 0 <= x < self._map_w and 0 <= y < self._win_h

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _draw(self) -> None:
        """Render one frame from the last published report."""
        self.screen.fill(_BG)
        report = self.bot.latest
        if report is not None:
            centre = report.analysis.units.anthill or Position(0, 0)
            self._draw_threat_overlay(report, centre)
            self._draw_bases(report, centre)
            self._draw_resources(report, centre)
            self._draw_units(report, centre)
        self._draw_info_panel(report)
        pygame.display.flip()

    def _draw_threat_overlay(self, report: TurnReport, centre: Position) -> None:
        """Shade cells by threat-map interest as a translucent overlay."""
        if not report.threat_cells:
            return
        max_val = max(interest for _, interest in report.threat_cells)
        if max_val <= 0:
            return

        overlay = pygame.Surface((self._map_w, self._win_h), pygame.SRCALPHA)
        colour = _THREAT_COLOUR.astype(int).tolist()
        for pos, interest in report.threat_cells:
            x, y = self.to_pixel(pos, centre)
            if not self._on_map(x, y):
                continue
            alpha = int(min(interest / max_val, 1.0) * 110)
            pygame.draw.polygon(overlay, (*colour, alpha), self._hex_corners(x, y))
        self.screen.blit(overlay, (0, 0))

    def _draw_bases(self, report: TurnReport, centre: Position) -> None:
        """Draw the anthill and known enemy bases as filled hexes."""
        home = report.analysis.units.anthill
        if home is not None:
            x, y = self.to_pixel(home, centre)
            pygame.draw.polygon(self.screen, _HOME, self._hex_corners(x, y))
        for base in report.analysis.units.enemy_bases:
            x, y = self.to_pixel(base, centre)
            if self._on_map(x, y):
                pygame.draw.polygon(self.screen, _ENEMY_BASE, self._hex_corners(x, y))

    def _draw_resources(self, report: TurnReport, centre: Position) -> None:
        """Draw resources as small squares coloured by type."""
        half = max(2, self.hex_size // 3)
        for resource in report.snapshot.resources:
            x, y = self.to_pixel(resource.position, centre)
            if not self._on_map(x, y):
                continue
            colour = _RESOURCE_COLOURS.get(resource.type, _TEXT)
            rect = (x - half, y - half, 2 * half, 2 * half)
            pygame.draw.rect(self.screen, colour, rect)

    def _draw_units(self, report: TurnReport, centre: Position) -> None:
        """Draw own units and enemies as dots."""
        radius = max(2, self.hex_size // 2)
        for unit in report.analysis.units.own:
            x, y = self.to_pixel(unit.position, centre)
            if self._on_map(x, y):
                colour = _UNIT_COLOURS.get(unit.type, _TEXT)
                pygame.draw.circle(self.screen, colour, (x, y), radius)
        for enemy in report.analysis.units.enemies:
            x, y = self.to_pixel(enemy.position, centre)
            if self._on_map(x, y):
                pygame.draw.circle(self.screen, _ENEMY, (x, y), radius, width=2)

    def _draw_info_panel(self, report: TurnReport | None) -> None:
        """Draw a stats panel on the right side of the window."""
        panel_x = self._map_w + 10
        y = 10

        if report is None:
            lines = ["Waiting for round..." if self.bot.waiting else "No turn yet"]
        else:
            analysis = report.analysis
            strategy = report.strategy
            counts = analysis.units.counts
            lines = [
                f"Turn: {analysis.turn}",
                f"Score: {report.snapshot.score}",
                f"{'PAUSED' if self.paused else 'LIVE'}",
                "",
                "--- Strategy ---",
                f"Name: {strategy.name}",
                f"Phase: {strategy.phase.value}",
                f"Recovery: {'yes' if strategy.recovery_mode else 'no'}",
                f"Threat: {analysis.threats.overall_level:.1f}",
                "",
                "--- Units ---",
                f"Workers: {counts.workers}",
                f"Soldiers: {counts.soldiers}",
                f"Scouts: {counts.scouts}",
                f"Enemies seen: {len(analysis.units.enemies)}",
                "",
                "--- Economy ---",
                f"Cal/turn: {analysis.economy.calories_per_turn:.1f}",
                f"Moves sent: {len(report.moves)}",
                f"Threat cells: {len(report.threat_cells)}",
            ]

        lines += [
            "",
            "--- Controls ---",
            "SPACE: pause",
            "+/-: zoom",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18
