from typing import Any, Dict, List

from .base import Repository


class CommunityNoteRepository(Repository):

    def list_post_proposals(self, post_uri: str) -> List[Dict[str, Any]]:
        """Notes targeting *post_uri*, each with its score status (NULL when unscored)."""
        return self._fetch_all(
            """
            SELECT n.id, n.post_uri, n.summary, n.reasons, n.aid,
                   n.label_status, n.created_at, s.status
            FROM community_notes AS n
            LEFT JOIN community_note_scores AS s ON s.note_id = n.id
            WHERE n.post_uri = %s AND n.target_type = 'post'
            """,
            (post_uri,),
        )
