from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression

from cessation.config import (
    BEST_SUBSET_GAMMA_GRID,
    BEST_SUBSET_MAX_SUPPORT,
    BEST_SUBSET_N_FOLDS,
    LASSO_MAX_ITER,
    LASSO_N_FOLDS,
    LASSO_N_LAMBDA,
    ModelName,
    SEED,
)
from cessation.cv import make_cv_folds
from cessation.errors import ConvergenceError
from cessation.metrics import binomial_deviance
from cessation.preprocess import make_scaler, nonconstant_columns, unscale_coefficients
from cessation.types import PenalizedFit

logger = logging.getLogger(__name__)

TIE_ATOL = 1e-12


def select_min_cv_index(cv_errors: np.ndarray, penalties: np.ndarray) -> int:
    """Index of the minimum CV error; tied minima go to the smallest penalty."""
    errs = np.asarray(cv_errors, dtype=float)
    pens = np.asarray(penalties, dtype=float)
    finite = np.isfinite(errs)
    if not finite.any():
        raise ConvergenceError("No finite cross-validated error over the penalty grid")
    best = float(np.min(errs[finite]))
    tied = np.where(finite & np.isclose(errs, best, rtol=0.0, atol=TIE_ATOL))[0]
    return int(tied[np.argmin(pens[tied])])


def _standardize(x_train: np.ndarray, *x_others: np.ndarray):
    scaler = make_scaler()
    x_train_s = scaler.fit_transform(x_train)
    return scaler, x_train_s, [scaler.transform(x) for x in x_others]


# --- Lasso -----------------------------------------------------------------


def lasso_lambda_path(
    x_std: np.ndarray,
    y: np.ndarray,
    n_lambda: int = LASSO_N_LAMBDA,
    min_ratio: float | None = None,
) -> np.ndarray:
    """Decreasing log-spaced lambda grid, starting where every coefficient is zero."""
    x_std = np.asarray(x_std, dtype=float)
    y = np.asarray(y, dtype=float)
    n, p = x_std.shape
    lambda_max = float(np.max(np.abs(x_std.T @ (y - y.mean()))) / n)
    if not np.isfinite(lambda_max) or lambda_max <= 0.0:
        raise ConvergenceError("Degenerate lambda path: no predictor is correlated with the outcome")
    if min_ratio is None:
        min_ratio = 1e-4 if n > p else 1e-2
    return np.exp(np.linspace(np.log(lambda_max), np.log(lambda_max * min_ratio), int(n_lambda)))


def _make_lasso(c_value: float, seed: int, max_iter: int) -> LogisticRegression:
    return LogisticRegression(
        penalty="l1",
        C=float(c_value),
        solver="saga",
        max_iter=int(max_iter),
        warm_start=True,
        random_state=int(seed),
    )


def _lasso_path_errors(
    x_train: np.ndarray,
    y_train: np.ndarray,
    x_val: np.ndarray,
    y_val: np.ndarray,
    lambdas: np.ndarray,
    seed: int,
    max_iter: int,
) -> tuple[np.ndarray, np.ndarray]:
    _, xs_train, (xs_val,) = _standardize(x_train, x_val)
    n = xs_train.shape[0]
    errors = np.full(lambdas.size, np.nan, dtype=float)
    nonzero = np.zeros(lambdas.size, dtype=int)
    clf = _make_lasso(1.0 / (n * lambdas[0]), seed=seed, max_iter=max_iter)
    for j, lam in enumerate(lambdas):
        clf.set_params(C=1.0 / (n * float(lam)))
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", ConvergenceWarning)
                clf.fit(xs_train, y_train)
        except ValueError as exc:
            logger.debug("Lasso fit failed at lambda=%.3g: %s", lam, exc)
            continue
        errors[j] = binomial_deviance(y_val, clf.predict_proba(xs_val)[:, 1])
        nonzero[j] = int(np.sum(clf.coef_[0] != 0.0))
    return errors, nonzero


def fit_lasso_cv(
    x_train: pd.DataFrame,
    y_train: pd.Series,
    seed: int = SEED,
    n_folds: int = LASSO_N_FOLDS,
    n_lambda: int = LASSO_N_LAMBDA,
    max_iter: int = LASSO_MAX_ITER,
) -> PenalizedFit:
    """L1-penalized logistic regression with lambda chosen by K-fold CV deviance.

    Lambda follows the glmnet scale (mean log-likelihood plus ``lambda * |b|_1``
    on standardized columns), so ``C = 1 / (n * lambda)``.
    """
    columns = list(x_train.columns)
    x = x_train.to_numpy(dtype=float)
    y = np.asarray(y_train, dtype=int)

    _, xs_full, _ = _standardize(x)
    lambdas = lasso_lambda_path(xs_full, y, n_lambda=n_lambda)
    folds = make_cv_folds(y, n_folds=n_folds, seed=seed)

    fold_errors = np.full((len(folds), lambdas.size), np.nan, dtype=float)
    for i, (tr, va) in enumerate(folds):
        fold_errors[i], _ = _lasso_path_errors(
            x[tr], y[tr], x[va], y[va], lambdas, seed=seed, max_iter=max_iter
        )

    # A lambda only counts if every fold produced an error for it.
    complete = np.all(np.isfinite(fold_errors), axis=0)
    mean_err = np.where(complete, np.mean(fold_errors, axis=0), np.nan)
    sd_err = np.where(complete, np.std(fold_errors, axis=0, ddof=1) if len(folds) > 1 else 0.0, np.nan)
    best = select_min_cv_index(mean_err, lambdas)
    lambda_min = float(lambdas[best])

    scaler, xs, _ = _standardize(x)
    clf = _make_lasso(1.0 / (xs.shape[0] * lambda_min), seed=seed, max_iter=max_iter)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        clf.fit(xs, y)
    coef, intercept = unscale_coefficients(clf.coef_[0], float(clf.intercept_[0]), scaler, columns)

    path = pd.DataFrame(
        {
            "lambda": lambdas,
            "mean_cv_deviance": mean_err,
            "sd_cv_deviance": sd_err,
            "is_selected": np.arange(lambdas.size) == best,
        }
    )
    logger.debug(
        "lasso: lambda_min=%.4g (index %d/%d), %d nonzero", lambda_min, best, lambdas.size, int(np.sum(coef != 0.0))
    )
    return PenalizedFit(
        model=ModelName.LASSO,
        columns=columns,
        coefficients=coef,
        intercept=intercept,
        selected={"lambda": lambda_min},
        cv_path=path,
        scaler=scaler,
        clf=clf,
        support=np.arange(len(columns)),
    )


# --- Best subset (L0L2) ----------------------------------------------------


def _fit_l2(x: np.ndarray, y: np.ndarray, gamma: float, seed: int) -> LogisticRegression:
    # gamma * |b|_2^2 on the mean loss  <=>  C = 1 / (2 * n * gamma)
    clf = LogisticRegression(
        C=1.0 / (2.0 * x.shape[0] * float(gamma)),
        solver="lbfgs",
        max_iter=3000,
        random_state=int(seed),
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        clf.fit(x, y)
    return clf


def forward_support_path(
    x_std: np.ndarray,
    y: np.ndarray,
    gamma: float,
    max_support: int,
    seed: int = SEED,
) -> list[tuple[list[int], LogisticRegression]]:
    """Supports of size 1..max_support, each extending the previous by the column
    that most reduces the penalized training deviance (ties -> lowest column index)."""
    candidates = nonconstant_columns(x_std).tolist()
    support: list[int] = []
    path: list[tuple[list[int], LogisticRegression]] = []
    for _ in range(min(int(max_support), len(candidates))):
        best_j: int | None = None
        best_loss = np.inf
        best_clf: LogisticRegression | None = None
        for j in candidates:
            if j in support:
                continue
            cols = support + [j]
            clf = _fit_l2(x_std[:, cols], y, gamma, seed)
            loss = binomial_deviance(y, clf.predict_proba(x_std[:, cols])[:, 1])
            if loss < best_loss - TIE_ATOL:
                best_j, best_loss, best_clf = j, loss, clf
        if best_j is None:
            break
        support = support + [best_j]
        path.append((support, best_clf))
    return path


def fit_best_subset_cv(
    x_train: pd.DataFrame,
    y_train: pd.Series,
    seed: int = SEED,
    n_folds: int = BEST_SUBSET_N_FOLDS,
    gamma_grid: list[float] | None = None,
    max_support: int = BEST_SUBSET_MAX_SUPPORT,
) -> PenalizedFit:
    """Best-subset logistic regression with an L2 ridge term (L0L2).

    Supports come from forward-stepwise search, an approximation of the L0L2
    problem: no exhaustive search over predictor combinations is made, so the
    chosen support is the best nested support, not necessarily the best subset.

    The (gamma, support size) pair is chosen by K-fold CV deviance; tied minima
    prefer the smaller gamma, then the larger support (smaller L0 penalty).
    """
    gammas = sorted(float(g) for g in (BEST_SUBSET_GAMMA_GRID if gamma_grid is None else gamma_grid))
    if not gammas:
        raise ValueError("gamma_grid must not be empty")
    columns = list(x_train.columns)
    x = x_train.to_numpy(dtype=float)
    y = np.asarray(y_train, dtype=int)
    folds = make_cv_folds(y, n_folds=n_folds, seed=seed)
    sizes = np.arange(1, int(max_support) + 1)

    fold_errors = np.full((len(folds), len(gammas), sizes.size), np.nan, dtype=float)
    for i, (tr, va) in enumerate(folds):
        _, xs_tr, (xs_va,) = _standardize(x[tr], x[va])
        for g, gamma in enumerate(gammas):
            for s, (support, clf) in enumerate(
                forward_support_path(xs_tr, y[tr], gamma, max_support, seed=seed)
            ):
                fold_errors[i, g, s] = binomial_deviance(
                    y[va], clf.predict_proba(xs_va[:, support])[:, 1]
                )

    complete = np.all(np.isfinite(fold_errors), axis=0)
    mean_err = np.where(complete, np.mean(fold_errors, axis=0), np.nan)

    grid_gamma = np.repeat(np.asarray(gammas), sizes.size)
    grid_size = np.tile(sizes, len(gammas))
    flat_err = mean_err.reshape(-1)
    # Rank tied cells: smaller gamma first, then larger support.
    order_key = np.lexsort((-grid_size, grid_gamma))
    rank = np.empty_like(order_key)
    rank[order_key] = np.arange(order_key.size)
    best = select_min_cv_index(flat_err, rank)
    gamma_min = float(grid_gamma[best])
    size_min = int(grid_size[best])

    scaler, xs, _ = _standardize(x)
    path = forward_support_path(xs, y, gamma_min, size_min, seed=seed)
    if len(path) < size_min:
        raise ConvergenceError(
            f"best_subset: full-data path reached {len(path)} predictors, CV chose {size_min}"
        )
    support, clf = path[size_min - 1]
    support_arr = np.asarray(support, dtype=int)

    coef_scaled = np.zeros(len(columns), dtype=float)
    coef_scaled[support_arr] = clf.coef_[0]
    coef, intercept = unscale_coefficients(coef_scaled, float(clf.intercept_[0]), scaler, columns)

    cv_path = pd.DataFrame(
        {
            "gamma": grid_gamma,
            "support_size": grid_size,
            "mean_cv_deviance": flat_err,
            "is_selected": np.arange(flat_err.size) == best,
        }
    )
    logger.debug(
        "best_subset: gamma=%.3g support=%d -> %s", gamma_min, size_min, [columns[j] for j in support]
    )
    return PenalizedFit(
        model=ModelName.BEST_SUBSET,
        columns=columns,
        coefficients=coef,
        intercept=intercept,
        selected={"gamma": gamma_min, "support_size": float(size_min)},
        cv_path=cv_path,
        scaler=scaler,
        clf=clf,
        support=support_arr,
    )


def fit_model_cv(model: str, x_train: pd.DataFrame, y_train: pd.Series, seed: int, **kwargs) -> PenalizedFit:
    if model == ModelName.LASSO:
        return fit_lasso_cv(x_train, y_train, seed=seed, **kwargs)
    if model == ModelName.BEST_SUBSET:
        return fit_best_subset_cv(x_train, y_train, seed=seed, **kwargs)
    raise ValueError(f"Unknown model: {model}")
