"""
Console harness for FlowManager (Functional Core)

Walks one respondent through the questionnaire in the terminal, then prints
both summaries and optionally saves them as text files.

Usage:
    python main.py [path/to/career_flow.json]

Commands at any prompt:
    b      go back one step
    quit   end early
"""

import logging
import sys

from compass.commands import (
    AcceptRecommendation,
    ChoosePath,
    FinalizePlan,
    GoBack,
    NextStep,
    SelectOption,
    StartSession,
    SubmitProfile,
    ToggleExperiment,
    UpdatePlan,
)
from compass.core.config_loader import ConfigIntegrityError, load_config
from compass.core.flow_manager import FlowManager
from compass.results import IllegalCommand
from compass.utils.helpers import save_summaries

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "data/career_flow.json"
EXIT_COMMANDS = {"quit", "exit", "stop"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_compass(result):
    """Print the live compass read-back"""
    compass = result.compass
    print("-" * 60)
    for row in compass["rows"]:
        bar = "#" * (row["percent"] // 10)
        print(f"  {row['rank']}. {row['label']:<20} {bar:<10} {row['percent']}%")
    print(f"  {compass['confidenceText']}")
    print(f"  {compass['hearing']}")
    print(f"  {compass['progress']}")
    print("-" * 60)


def ask(prompt):
    answer = input(prompt).strip()
    if answer.lower() in EXIT_COMMANDS:
        raise KeyboardInterrupt
    return answer


def run_question(flow, result):
    """Handle one diagnostic/refinement question. Returns the next result."""
    view = result.view
    print(f"\n[{view['index'] + 1}/{view['total']}] {view['prompt']}")
    if view["type"] == "multi":
        print(f"  (choose up to {view['maxSelect']}, enter numbers separated by spaces)")
    for i, option in enumerate(view["options"], 1):
        mark = "x" if option["selected"] else " "
        print(f"  {i}. [{mark}] {option['label']}")

    raw = ask("> ")
    if raw.lower() == "b":
        return flow.handle(GoBack(state=result.state))
    if not raw and view["canContinue"]:
        return flow.handle(NextStep(state=result.state))

    current = result
    chosen = []
    for token in raw.split():
        if not token.isdigit() or not 1 <= int(token) <= len(view["options"]):
            print(f"Ignoring '{token}'")
            continue
        chosen.append(view["options"][int(token) - 1]["id"])

    # Clear previous selection before applying the new one
    for option in view["options"]:
        if option["selected"] and option["id"] not in chosen:
            current = flow.handle(SelectOption(state=current.state, option_id=option["id"]))
    for option_id in chosen:
        if option_id not in current.state.pending_selection:
            current = flow.handle(SelectOption(state=current.state, option_id=option_id))

    if not current.state.pending_selection:
        print("Please choose an option.")
        return current
    return flow.handle(NextStep(state=current.state))


def run_recommendation(flow, result):
    view = result.view
    print(f"\nRecommended direction: {view['primaryPath']} (secondary: {view['secondaryPath']})")
    print(f"  chosen by: {view['chosenBy']}, dominant signal: {view['dominantSignal']}")
    for i, item in enumerate(view["ranked"], 1):
        print(f"  {i}. {item['label']} ({item['score']})")
    raw = ask("Enter to accept, a number to choose a different path, b to go back: ")
    if raw.lower() == "b":
        return flow.handle(GoBack(state=result.state))
    if raw.isdigit() and 1 <= int(raw) <= len(view["ranked"]):
        return flow.handle(ChoosePath(state=result.state, path_id=view["ranked"][int(raw) - 1]["pathId"]))
    return flow.handle(AcceptRecommendation(state=result.state))


def run_plan(flow, result):
    view = result.view
    print(f"\nExperiments (pick up to {view['maxPickCount']}):")
    for i, experiment in enumerate(view["experiments"], 1):
        mark = "x" if experiment["selected"] else " "
        print(f"  {i}. [{mark}] {experiment['label']} ({experiment['timeframe']})")
    print(f"\nFocus statement: {view['focusStatement']}")
    print(f"Open question: {view['openQuestion']}")

    raw = ask("Number to toggle, 'f <text>' for focus, 'q <text>' for question, Enter to finish: ")
    if raw.lower() == "b":
        return flow.handle(GoBack(state=result.state))
    if raw.isdigit() and 1 <= int(raw) <= len(view["experiments"]):
        return flow.handle(ToggleExperiment(state=result.state, experiment_id=view["experiments"][int(raw) - 1]["id"]))
    if raw.startswith("f "):
        return flow.handle(UpdatePlan(state=result.state, focus_statement=raw[2:]))
    if raw.startswith("q "):
        return flow.handle(UpdatePlan(state=result.state, open_question=raw[2:]))
    return flow.handle(FinalizePlan(state=result.state))


def run_profile(flow, result):
    values = {}
    for field in result.view["fields"]:
        if field["type"] == "select":
            for i, option in enumerate(field["options"], 1):
                print(f"  {i}. {option}")
            raw = ask(f"{field['label']}: ")
            if raw.isdigit() and 1 <= int(raw) <= len(field["options"]):
                values[field["id"]] = field["options"][int(raw) - 1]
        else:
            raw = ask(f"{field['label']}: ")
            if raw:
                values[field["id"]] = raw
    return flow.handle(SubmitProfile(state=result.state, values=values))


def main():
    """Run console walk-through"""
    config_path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG

    try:
        config = load_config(config_path)
    except (FileNotFoundError, ConfigIntegrityError) as e:
        print(f"\nFailed to load configuration: {e}")
        return 1

    flow = FlowManager(config)

    print_separator()
    print("CAREER COMPASS")
    print_separator()
    print("Type 'b' to go back, 'quit' to end early\n")

    result = flow.handle(StartSession())
    result = flow.handle(NextStep(state=result.state))

    try:
        while result.state.phase.value != "summary":
            screen = result.view["screen"]
            if screen in ("diagnostic", "refinement"):
                print_compass(result)
                step = run_question(flow, result)
            elif screen == "profile":
                step = run_profile(flow, result)
            elif screen == "recommendation":
                print_compass(result)
                step = run_recommendation(flow, result)
            elif screen == "plan":
                step = run_plan(flow, result)
            else:
                step = flow.handle(NextStep(state=result.state))

            if isinstance(step, IllegalCommand):
                print(f"\n{step.reason}")
                continue
            if step.notice:
                print(f"\n{step.notice}")
            result = step

    except (KeyboardInterrupt, EOFError):
        print("\n\nSession ended by user")
        return 0

    summaries = result.state.summaries
    print_separator()
    print(summaries["employee"])
    print_separator()
    print(summaries["leader"])
    print_separator()

    if input("Save summaries to files? (y/n): ").strip().lower() == "y":
        for path in save_summaries(summaries, result.state.session_id):
            print(f"  - {path}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
