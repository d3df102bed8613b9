"""
Shared builders for evaluation tests.
"""
from note_eval.eval.schema import EvaluationRecord


def make_record(model="m1", image="medical_note_05.png", prompt="soap_enhanced", **overrides):
    values = dict(
        image=image,
        model=model,
        model_name=model.upper(),
        prompt=prompt,
        schema_valid=True,
        section_completeness=1.0,
        null_field_ratio=0.1,
        highlight_recall=0.8,
        highlights_covered=4,
        highlights_total=5,
        negation_errors=0,
        negation_preservation_rate=1.0,
        symptom_recall=0.9,
        hallucinated_vitals=False,
        hallucinated_labs=False,
        diagnosis_grounded=True,
        rouge_l_score=0.4,
        word_overlap=0.3,
        latency_ms=2000.0,
    )
    values.update(overrides)
    return EvaluationRecord(**values)


def make_error(model="m1", image="medical_note_05.png", prompt="soap_enhanced", message="timeout"):
    return make_record(
        model=model, image=image, prompt=prompt,
        schema_valid=False, section_completeness=0.0, null_field_ratio=1.0,
        highlight_recall=0.0, highlights_covered=0, negation_preservation_rate=0.0,
        symptom_recall=0.0, diagnosis_grounded=False, rouge_l_score=0.0, word_overlap=0.0,
        latency_ms=0.0, has_error=True, error_message=message,
    )
