"""
Kalman filter for linear Gaussian POMP models.

Gives the exact log-likelihood against which particle filter estimates are
checked.
"""

import numpy as np
from typing import Optional

from .base import FilterResult
from .particle import prepare_data
from ..models.base import POMPModel


class KalmanFilter:
    """
    Standard Kalman Filter for linear Gaussian models.

    Requires a model built with kalman_params (see make_lgssm).
    """

    def filter(
        self,
        model: POMPModel,
        observations: np.ndarray,
        theta=None,
        times: Optional[np.ndarray] = None,
    ) -> FilterResult:
        """
        Run Kalman filter on observations.

        Args:
            model: POMPModel with kalman_params
            observations: [T, ny] Observations (y_1, ..., y_T)
            theta: Parameters (overrides of the model matrices)
            times: Accepted for interface symmetry; steps are discrete

        Returns:
            FilterResult with filtered means, covariances and exact log-likelihood
        """
        if model.kalman_params is None:
            raise TypeError(f"{model.name} is not a linear Gaussian model (no kalman_params)")

        y, _, _ = prepare_data(model, observations, times)
        p = model.kalman_params(theta)
        F, H, Q, R = p["A"], p["C"], p["Q"], p["R"]

        T = y.shape[0]
        nx = model.state_dim

        means = np.zeros((T + 1, nx))
        covariances = np.zeros((T + 1, nx, nx))
        log_likelihoods = np.zeros(T)

        means[0] = p["m0"]
        covariances[0] = p["P0"]

        for t in range(T):
            # Predict
            m_pred = F @ means[t]
            P_pred = F @ covariances[t] @ F.T + Q
            P_pred = 0.5 * (P_pred + P_pred.T)  # Symmetrize

            # Update
            m_upd, P_upd, log_lik = self._update(m_pred, P_pred, y[t], H, R)

            means[t + 1] = m_upd
            covariances[t + 1] = P_upd
            log_likelihoods[t] = log_lik

        return FilterResult(
            means=means,
            covariances=covariances,
            log_likelihood=float(np.sum(log_likelihoods)),
            log_likelihood_increments=log_likelihoods,
        )

    def _update(
        self,
        m_pred: np.ndarray,
        P_pred: np.ndarray,
        y: np.ndarray,
        H: np.ndarray,
        R: np.ndarray,
    ) -> tuple:
        """
        Kalman update step.

        Returns:
            m_upd: [nx] Updated mean
            P_upd: [nx, nx] Updated covariance
            log_lik: Log density of y under the prediction distribution
        """
        nx = len(m_pred)
        ny = len(y)

        # Innovation
        v = y - H @ m_pred

        # Innovation covariance
        S = H @ P_pred @ H.T + R
        S = 0.5 * (S + S.T)

        # Kalman gain: solve S @ K.T = H @ P_pred for K.T
        K = np.linalg.solve(S, H @ P_pred).T

        m_upd = m_pred + K @ v

        # Joseph form for numerical stability
        IKH = np.eye(nx) - K @ H
        P_upd = IKH @ P_pred @ IKH.T + K @ R @ K.T
        P_upd = 0.5 * (P_upd + P_upd.T)

        S_chol = np.linalg.cholesky(S)
        S_logdet = 2.0 * np.sum(np.log(np.diag(S_chol)))
        solved = np.linalg.solve(S_chol, v)
        mahal_sq = np.sum(solved ** 2)
        log_lik = -0.5 * (ny * np.log(2 * np.pi) + S_logdet + mahal_sq)

        return m_upd, P_upd, log_lik
