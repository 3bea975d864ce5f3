from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from streettrader.content.story import MilestoneDef, MilestoneTable, load_milestones_json
from streettrader.content.vehicles import DEFAULT_VEHICLE_ID
from streettrader.sim import narrative
from streettrader.sim.state import DIFFICULTY_SETTINGS, GameState, StoryState, resolve_difficulty

logger = logging.getLogger(__name__)

OPENING_MILESTONE_ID = "opening"
SAFEST_VEHICLE_ID = "Car"
DEAL_EVENT_IDS = frozenset({"cheap_deal", "bulk_seller"})
LOAN_EVENT_ID = "loan_shark"


@dataclass(frozen=True)
class StoryBeat:
    milestone_id: str
    title: str
    description: str
    day: int
    phase: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "milestone_id": self.milestone_id,
            "title": self.title,
            "description": self.description,
            "day": self.day,
            "phase": self.phase,
        }


def starting_cash_for(difficulty: str) -> int:
    return DIFFICULTY_SETTINGS[resolve_difficulty(difficulty)].starting_cash


def profit_ratio(state: GameState) -> float:
    return state.player.cash / starting_cash_for(state.player.difficulty)


class StoryManager:
    """Milestone state machine plus the narrative hints consumed by the event system.

    Milestones are considered triggered exactly when their id appears in
    ``story.events_triggered``, so a fresh ``StoryState`` resets all of them.
    """

    def __init__(self, milestones: MilestoneTable | None = None) -> None:
        self._milestones = milestones if milestones is not None else load_milestones_json()

    @property
    def milestones(self) -> tuple[MilestoneDef, ...]:
        return self._milestones.milestones

    def reset_story_progression(self, state: GameState) -> None:
        state.story = StoryState()

    def is_triggered(self, state: GameState, milestone_id: str) -> bool:
        return milestone_id in state.story.events_triggered

    def check_for_story_milestone(self, state: GameState) -> StoryBeat | None:
        day = state.player.day
        for milestone in self.milestones:
            if milestone.day == day and not self.is_triggered(state, milestone.milestone_id):
                self._mark_triggered(state, milestone)
                return StoryBeat(
                    milestone_id=milestone.milestone_id,
                    title=milestone.title,
                    description=milestone.text,
                    day=milestone.day,
                    phase=milestone.phase,
                )
        return None

    def trigger_story_event(self, state: GameState, milestone_id: str) -> StoryBeat | None:
        milestone = self._milestones.by_id().get(milestone_id)
        if milestone is None or self.is_triggered(state, milestone_id):
            return None
        self._mark_triggered(state, milestone)
        player = state.player
        tail = narrative.performance_narrative(
            state.story.player_performance,
            starting_cash_for(player.difficulty),
            player.cash,
        )
        return StoryBeat(
            milestone_id=milestone.milestone_id,
            title=milestone.title,
            description=f"{milestone.text}\n\n{tail}",
            day=milestone.day,
            phase=milestone.phase,
        )

    def _mark_triggered(self, state: GameState, milestone: MilestoneDef) -> None:
        story = state.story
        if milestone.milestone_id not in story.events_triggered:
            story.events_triggered.append(milestone.milestone_id)
        story.current_phase = milestone.phase
        self.update_player_performance(state)
        logger.debug(
            "story milestone triggered id=%s day=%d performance=%s",
            milestone.milestone_id,
            state.player.day,
            story.player_performance,
        )

    def update_player_performance(self, state: GameState) -> str:
        player = state.player
        ratio = profit_ratio(state)

        performance = "average"
        if ratio >= 5.0:
            performance = "excellent"
        elif ratio >= 2.0:
            performance = "good"
        elif ratio < 0.5:
            performance = "poor"

        # Later days expect more profit for the same rating.
        time_progress = player.day / player.max_days
        if time_progress > 0.5 and ratio < 1.5:
            performance = "poor"
        elif time_progress > 0.8 and ratio < 2.0:
            performance = "average"

        state.story.player_performance = performance
        return performance

    def story_status(self, state: GameState) -> dict[str, Any]:
        story = state.story
        return {
            "current_phase": story.current_phase,
            "events_triggered": list(story.events_triggered),
            "player_performance": story.player_performance,
            "milestones": [
                {
                    "milestone_id": milestone.milestone_id,
                    "day": milestone.day,
                    "title": milestone.title,
                    "triggered": self.is_triggered(state, milestone.milestone_id),
                }
                for milestone in self.milestones
            ],
            "available_events": [
                milestone.milestone_id
                for milestone in self.milestones
                if not self.is_triggered(state, milestone.milestone_id) and milestone.day <= state.player.day
            ],
        }

    def gameplay_mechanic_introduction(self, state: GameState, kind: str) -> str:
        return narrative.mechanic_introduction(kind, state.story.player_performance)

    def adapt_story_to_player_actions(self, state: GameState, action: str, details: dict[str, Any]) -> str:
        return narrative.adapted_action_text(action, state.story.player_performance, details)

    def generate_performance_hints(self, state: GameState) -> list[str]:
        player = state.player
        return narrative.performance_hints(state.story.player_performance, player.day / player.max_days)

    def record_event_outcome(
        self,
        state: GameState,
        *,
        event_id: str,
        event_type: str,
        title: str,
        choice: str | None,
        message: str,
    ) -> None:
        """Log a resolved event and fold the decision into the risk profile and character traits."""
        story = state.story
        day = state.player.day
        choice_key = f"{title.lower().replace(' ', '_')}_{day}"
        story.player_choices[choice_key] = {
            "choice": choice,
            "result": message,
            "event_type": event_type,
            "day": day,
        }

        if event_id == LOAN_EVENT_ID and choice == "accept":
            story.risk_profile["high_risk_financial"] += 1
            self._bump_trait(story, "risk_taking")
            self.update_player_performance(state)
        elif event_id == LOAN_EVENT_ID and choice == "decline":
            story.risk_profile["conservative_choices"] += 1
            self._bump_trait(story, "cautious")
        elif event_id in DEAL_EVENT_IDS and choice == "buy":
            story.risk_profile["smart_opportunity"] += 1
            self._bump_trait(story, "opportunistic")
            self.update_player_performance(state)

        pattern_key = f"{event_type}_{choice or 'none'}"
        story.decision_patterns[pattern_key] = story.decision_patterns.get(pattern_key, 0) + 1
        self._update_story_themes(story)

    @staticmethod
    def _bump_trait(story: StoryState, trait: str) -> None:
        story.character_traits[trait] = story.character_traits.get(trait, 0) + 1

    @staticmethod
    def _update_story_themes(story: StoryState) -> None:
        traits = story.character_traits
        cautious = traits.get("cautious", 0)
        risk_taking = traits.get("risk_taking", 0)
        opportunistic = traits.get("opportunistic", 0)
        themes: list[str] = []

        if cautious > risk_taking:
            themes.append("survival_over_success")
        elif risk_taking > cautious * 2:
            themes.append("high_stakes_gambler")
        if opportunistic >= 3:
            themes.append("street_smart_entrepreneur")
        # Rebuilt from the current traits so themes never contradict each other.
        story.story_themes[:] = themes

    def generate_story_conclusion(self, state: GameState) -> dict[str, Any]:
        starting_cash = starting_cash_for(state.player.difficulty)
        title = narrative.conclusion_title(profit_ratio(state))
        return {
            "title": title,
            "description": narrative.conclusion_text(title, starting_cash, state.player.cash),
            "performance": state.story.player_performance,
        }

    def calculate_risk_tolerance(self, state: GameState) -> float:
        score = 0.5
        vehicle = state.player.vehicle
        if vehicle == DEFAULT_VEHICLE_ID:
            score += 0.3
        elif vehicle == SAFEST_VEHICLE_ID:
            score -= 0.2

        ratio = profit_ratio(state)
        if ratio > 5:
            score += 0.2
        elif ratio < 1:
            score += 0.3
        return max(0.0, min(1.0, score))

    def generate_detailed_story_conclusion(self, state: GameState) -> dict[str, Any]:
        player = state.player
        metrics = {
            "profit_multiplier": profit_ratio(state),
            "survival_rate": player.day / player.max_days,
            "story_engagement": len(state.story.events_triggered) / max(1, len(self.milestones)),
            "risk_tolerance": self.calculate_risk_tolerance(state),
            "efficiency": player.cash / player.day,
        }
        conclusion = self.generate_story_conclusion(state)
        conclusion["metrics"] = metrics
        conclusion["analysis"] = narrative.performance_analysis(metrics)
        conclusion["recommendations"] = narrative.recommendations(metrics)
        return conclusion
