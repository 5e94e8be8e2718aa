"""
Problems router — the static corpus without answers.
  GET /problems           → every problem, answer stripped
  GET /problems/{id}      → one problem, answer stripped
"""

from fastapi import APIRouter, Depends, HTTPException

from app.deps import get_corpus
from app.services.corpus import ProblemRepository

router = APIRouter()


@router.get("")
def list_problems(corpus: ProblemRepository = Depends(get_corpus)):
    return [p.public_dict() for p in corpus.all()]


@router.get("/{problem_id}")
def get_problem(problem_id: str, corpus: ProblemRepository = Depends(get_corpus)):
    problem = corpus.get(problem_id)
    if not problem:
        raise HTTPException(status_code=404, detail="Problem not found")
    return problem.public_dict()
