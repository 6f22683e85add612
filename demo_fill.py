#!/usr/bin/env python3
"""
Filling Demo: Questionnaire → Response Tree → Answers → QuestionnaireResponse

Shows the full workflow:
1. Build the example PHQ-2 questionnaire
2. Analyze the definition
3. Answer questions and watch the score update
4. Serialize the response
"""

from qrm.analyzer import analyze_questionnaire
from qrm.config import load_config
from qrm.examples import build_example_phq_questionnaire
from qrm.logging_setup import configure_logging
from qrm.response import ResponseTree
from qrm.serialization import dump_response_json


def main():
    configure_logging("INFO")
    config = load_config()

    print("=" * 80)
    print("FILLING DEMO: Questionnaire → Answers → QuestionnaireResponse")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Build questionnaire
    # =========================================================================
    print("\n1. BUILDING QUESTIONNAIRE...")
    questionnaire = build_example_phq_questionnaire()
    print(f"   ✓ Loaded: {questionnaire.title}")
    print(f"   ✓ Items: {len(list(questionnaire.iter_items()))}")

    # =========================================================================
    # STEP 2: Analyze
    # =========================================================================
    print("\n2. ANALYZING QUESTIONNAIRE...")
    report = analyze_questionnaire(questionnaire)
    print(f"   ✓ Items by type: {report.items_by_type}")
    print(f"   ✓ Score sinks: {report.score_sinks}")
    print(f"   ✓ Cycles detected: {report.has_cycles}")
    for warning in report.warnings:
        print(f"      - {warning}")

    # =========================================================================
    # STEP 3: Answer
    # =========================================================================
    print("\n3. ANSWERING...")
    tree = ResponseTree(questionnaire, config=config)
    tree.subscribe(lambda change: print(f"   · revision {change.revision}: {sorted(change.link_ids)}"))

    tree.model("phq-1").select("LA6569-3")
    tree.model("phq-2").select("LA6570-1")
    print(f"   ✓ Total score: {tree.total_score()}")

    print(f"   ✓ comments visible: {tree.find('comments').enabled}")
    tree.model("concerns").toggle("sleep")
    print(f"   ✓ comments visible: {tree.find('comments').enabled}")

    progress = tree.progress()
    print(f"   ✓ Progress: {progress.answered}/{progress.total}")

    # =========================================================================
    # STEP 4: Serialize
    # =========================================================================
    print("\n4. SERIALIZING RESPONSE...")
    print(dump_response_json(tree, status="completed"))

    print("\n" + "=" * 80)
    print("DEMO COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()
