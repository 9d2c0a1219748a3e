from fastapi import APIRouter, Depends, HTTPException, Query, status

from pestcontrol.auth.dependencies import get_current_user
from pestcontrol.services import geocoding

router = APIRouter(tags=['geocoding'], dependencies=[Depends(get_current_user)])


@router.get('/search', response_model=list[geocoding.GeocodeResult])
def search_address(q: str = Query(...), limit: int = Query(default=5, ge=1, le=10)):
    try:
        return geocoding.search(q, limit=limit)
    except geocoding.GeocodingError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
