"""Type definitions for GitHub API responses."""

from enum import Enum
from typing import Dict, List, Optional, Protocol, Tuple, Union
from pydantic import BaseModel, ValidationError

class PRState(str, Enum):
    """Pull request state as reported by GraphQL."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MERGED = "MERGED"

# GraphQL response types with Pydantic models
class PRNode(BaseModel):
    id: str
    number: int
    url: str
    title: str
    body: Optional[str] = None
    baseRefName: str
    headRefName: str
    state: PRState

class PRConnection(BaseModel):
    nodes: List[PRNode]

class RepositoryPullRequests(BaseModel):
    pullRequests: PRConnection

class RepositoryNode(BaseModel):
    id: str
    url: str

class CreatedPRNode(BaseModel):
    id: str
    number: int
    url: str

class CreatePullRequestPayload(BaseModel):
    pullRequest: Optional[CreatedPRNode] = None

class UpdatedPRNode(BaseModel):
    id: str
    number: int

class UpdatePullRequestPayload(BaseModel):
    pullRequest: Optional[UpdatedPRNode] = None

class GraphQLErrorLocation(BaseModel):
    line: int
    column: int

class GraphQLError(BaseModel):
    message: str
    type: Optional[str] = None
    locations: Optional[List[GraphQLErrorLocation]] = None
    path: Optional[List[Union[str, int]]] = None

class GraphQLResponse(BaseModel):
    data: Optional[Dict[str, object]] = None
    errors: Optional[List[GraphQLError]] = None

# Type for PyGithub GraphQL response
# First element is headers dict, second is the response data
GraphQLResponseType = Tuple[Dict[str, object], Dict[str, object]]

def parse_graphql_response(response: Dict[str, object]) -> GraphQLResponse:
    """Parse GraphQL response into Pydantic model."""
    try:
        return GraphQLResponse.model_validate(response)
    except ValidationError as e:
        raise TypeError(f"Invalid GraphQL response: {e}")

class GitHubRequester(Protocol):
    """Type for PyGithub requester to handle GraphQL calls.

    This types the internal _Github__requester that's needed for GraphQL.
    We use a Protocol since the requester is a private implementation detail.
    """
    def requestJsonAndCheck(
        self,
        verb: str,
        url: str,
        parameters: Optional[Dict[str, object]] = None,
        headers: Optional[Dict[str, str]] = None,
        input: Optional[Dict[str, object]] = None
    ) -> GraphQLResponseType:
        ...
