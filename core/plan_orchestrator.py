"""Plan orchestrator — greenfield or contextual planning behind a quality gate."""

import logging

from config.defaults import DEFAULTS
from core.errors import check_cancelled
from core.progress import ProgressReporter
from core.quality import score_plan
from core.state import AnalysisMode, PlanIntent, PlanResult, Scenario, freeze_files
from manager.classifier import classify_intent, detect_scenario

LOGGER = logging.getLogger(__name__)


class PlanOrchestrator:
    """Decides how to plan a request and refines weak plans once.

    Agent failures propagate to the caller unchanged; planning is never
    retried beyond the single refinement pass.
    """

    name = "plan"

    def __init__(self, planner, designer, analyzer, scenario_classifier=None,
                 intent_classifier=None, threshold=None, enable_refinement=None):
        self.planner = planner
        self.designer = designer
        self.analyzer = analyzer
        self.scenario_classifier = scenario_classifier or detect_scenario
        self.intent_classifier = intent_classifier or classify_intent
        self.threshold = DEFAULTS["quality_threshold"] if threshold is None else threshold
        self.enable_refinement = (DEFAULTS["enable_refinement"]
                                  if enable_refinement is None else enable_refinement)

    def run(self, message, files=None, on_update=None, context="", cancel_event=None) -> PlanResult:
        files = freeze_files(files)
        progress = ProgressReporter(self.name, on_update)
        scenario = Scenario(self.scenario_classifier(message, files))
        progress.emit("scenario", f"Scenario: {scenario.value}", scenario=scenario.value)

        if scenario is Scenario.SKIP:
            progress.emit("skip", "Simple change, skipping planning")
            return PlanResult(scenario=scenario.value, skip_planning=True,
                              reason="Simple additive change to existing files")

        if scenario is Scenario.GREENFIELD:
            return self._greenfield(message, context, progress, cancel_event)
        return self._contextual(message, files, context, progress, cancel_event)

    def _greenfield(self, message, context, progress, cancel_event):
        check_cancelled(cancel_event)
        progress.emit("planning", "Planning a new app")
        plan = self.planner.run(message, PlanIntent.CREATE_NEW, context=context)

        check_cancelled(cancel_event)
        progress.emit("design", f"Designing the look of {plan.app_name or 'the app'}")
        ux_design = self.designer.design(plan.app_name, plan.tagline, message)

        plan, quality, refined = self._quality_gate(
            plan, progress, cancel_event,
            lambda improvements: self.planner.run(message, PlanIntent.CREATE_NEW, context=context,
                                                  improvements=improvements),
        )
        return PlanResult(
            scenario=Scenario.GREENFIELD.value, plan=plan, quality=quality,
            ux_design=ux_design, intent=PlanIntent.CREATE_NEW.value, refined=refined,
        )

    def _contextual(self, message, files, context, progress, cancel_event):
        check_cancelled(cancel_event)
        progress.emit("analysis", f"Analyzing {len(files)} existing file(s)")
        analysis = self.analyzer.run(message, files, AnalysisMode.MODIFICATION)

        intent = PlanIntent(self.intent_classifier(message))
        check_cancelled(cancel_event)
        progress.emit("planning", f"Planning with intent {intent.value}", intent=intent.value)
        plan = self.planner.run(message, intent, files=files, analysis=analysis, context=context)

        plan, quality, refined = self._quality_gate(
            plan, progress, cancel_event,
            lambda improvements: self.planner.run(message, intent, files=files, analysis=analysis,
                                                  context=context, improvements=improvements),
        )
        return PlanResult(
            scenario=Scenario.CONTEXTUAL.value, plan=plan, quality=quality,
            analysis=analysis, ux_design=analysis.existing_ux, intent=intent.value, refined=refined,
        )

    def _quality_gate(self, plan, progress, cancel_event, replan):
        quality = score_plan(plan, self.threshold)
        progress.emit("quality", f"Plan quality {quality.score:.2f}", score=quality.score,
                      passed=quality.passed)
        if quality.passed or not self.enable_refinement:
            return plan, quality, False

        check_cancelled(cancel_event)
        progress.emit("refinement", "Refining plan: " + "; ".join(quality.suggestions))
        plan = replan(quality.suggestions)
        quality = score_plan(plan, self.threshold)
        progress.emit("quality", f"Refined plan quality {quality.score:.2f}", score=quality.score,
                      passed=quality.passed)
        return plan, quality, True
