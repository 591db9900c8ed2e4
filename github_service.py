import logging

import requests

from service_errors import ServiceError

logger = logging.getLogger(__name__)


class GitHubService:
    def __init__(self, token=None, timeout=10):
        self.token = token
        self.timeout = timeout
        self.base_url = 'https://api.github.com'

    def _headers(self):
        headers = {'Accept': 'application/vnd.github+json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def list_repos(self, username):
        """Public repositories of a GitHub user"""
        url = f'{self.base_url}/users/{username}/repos'
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("GitHub request for %s failed: %s", username, e)
            raise ServiceError('Failed to fetch GitHub repositories') from e

        if response.status_code != 200:
            logger.warning("GitHub returned %s for %s", response.status_code, username)
            raise ServiceError('Failed to fetch GitHub repositories')

        return response.json()
